"""
字段取值编解码

三种表示：
- 展示值（审稿人填写 / 界面显示）：例如 "Top 1%"、"SCI/SCIE"、"Yes"
- 规范值（表单内部 token）：例如 top1、wos、yes
- 存储值（后端数据库）：例如 Top_1_、布尔、数字

to_canonical / to_display 均为全函数，不抛异常；
没有显式映射规则的字段原样返回（枚举类字段回退为小写）。
"""
from __future__ import annotations

import math
from typing import Any, Dict, FrozenSet, Iterable, Optional

from app.services.contribution.field_names import (
    DATE_FIELDS,
    FLOAT_FIELDS,
    INTEGER_FIELDS,
    LIST_FIELDS,
    QUARTILE_FIELDS,
    YES_NO_FIELDS,
)

# 规范值 → 展示值
QUARTILE_DISPLAY: Dict[str, str] = {
    "top1": "Top 1%",
    "top5": "Top 5%",
    "q1": "Q1",
    "q2": "Q2",
    "q3": "Q3",
    "q4": "Q4",
}

RESEARCH_TYPE_DISPLAY: Dict[str, str] = {
    "scopus": "Scopus",
    "wos": "SCI/SCIE",
    "both": "Both",
}

YES_NO_DISPLAY: Dict[str, str] = {
    "yes": "Yes",
    "no": "No",
}

# 规范值 → 数据库枚举名
QUARTILE_STORAGE: Dict[str, str] = {
    "top1": "Top_1_",
    "top5": "Top_5_",
    "q1": "Q1",
    "q2": "Q2",
    "q3": "Q3",
    "q4": "Q4",
}


def _invert(table: Dict[str, str]) -> Dict[str, str]:
    return {v: k for k, v in table.items()}


_QUARTILE_FROM_DISPLAY = _invert(QUARTILE_DISPLAY)
_QUARTILE_FROM_STORAGE = _invert(QUARTILE_STORAGE)
_RESEARCH_TYPE_FROM_DISPLAY = _invert(RESEARCH_TYPE_DISPLAY)

_TRUTHY = {"true", "yes"}


def parse_list(value: Any) -> FrozenSet[str]:
    """
    解析多值字段（SDG 目标、收录类别）

    接受逗号分隔字符串或已结构化的集合，去除首尾空白并丢弃空项。
    """
    if value is None:
        return frozenset()
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, Iterable):
        items = value
    else:
        items = [value]
    return frozenset(t for t in (str(item).strip() for item in items) if t)


def parse_number(value: Any) -> Optional[float]:
    """解析数值字段；空值或无法解析时返回 None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def _yes_no(value: Any) -> str:
    if isinstance(value, bool):
        return "yes" if value else "no"
    return "yes" if str(value).strip().lower() in _TRUTHY else "no"


def _quartile_token(value: Any) -> str:
    text = str(value).strip()
    if text in _QUARTILE_FROM_DISPLAY:
        return _QUARTILE_FROM_DISPLAY[text]
    if text in _QUARTILE_FROM_STORAGE:
        return _QUARTILE_FROM_STORAGE[text]
    return text.lower()


def to_canonical(field_name: str, display_value: Any) -> Any:
    """展示值 → 规范值"""
    if field_name in LIST_FIELDS:
        return parse_list(display_value)
    if display_value is None:
        return ""
    if field_name in YES_NO_FIELDS:
        return _yes_no(display_value)
    if field_name == "targetedResearchType":
        text = str(display_value).strip()
        return _RESEARCH_TYPE_FROM_DISPLAY.get(text, text.lower())
    if field_name in QUARTILE_FIELDS:
        return _quartile_token(display_value)
    return display_value


def to_display(field_name: str, canonical_value: Any) -> Any:
    """规范值 → 展示值"""
    if field_name in LIST_FIELDS:
        return ", ".join(sorted(parse_list(canonical_value)))
    if canonical_value is None:
        return ""
    if field_name in YES_NO_FIELDS:
        return YES_NO_DISPLAY.get(str(canonical_value), canonical_value)
    if field_name == "targetedResearchType":
        return RESEARCH_TYPE_DISPLAY.get(str(canonical_value), canonical_value)
    if field_name in QUARTILE_FIELDS:
        return QUARTILE_DISPLAY.get(str(canonical_value), canonical_value)
    return canonical_value


def _format_number(number: float) -> str:
    if number.is_integer():
        return str(int(number))
    return str(number)


def to_storage(field_name: str, form_value: Any) -> Any:
    """
    表单值 → 后端存储值（字段名为表单命名）

    空字符串 / 空集合统一存为 None。
    """
    if field_name in LIST_FIELDS:
        items = parse_list(form_value)
        return sorted(items) if items else None
    if form_value is None or form_value == "":
        return None
    if field_name in YES_NO_FIELDS:
        return _yes_no(form_value) == "yes"
    if field_name in INTEGER_FIELDS:
        number = parse_number(form_value)
        return int(number) if number is not None else None
    if field_name in FLOAT_FIELDS:
        return parse_number(form_value)
    if field_name in QUARTILE_FIELDS:
        token = _quartile_token(form_value)
        return QUARTILE_STORAGE.get(token, form_value)
    if field_name in DATE_FIELDS:
        return str(form_value)[:10]
    return form_value


def from_storage(field_name: str, stored_value: Any) -> Any:
    """后端存储值 → 表单值（字段名为表单命名）"""
    if field_name in LIST_FIELDS:
        return parse_list(stored_value)
    if stored_value is None:
        return ""
    if field_name in YES_NO_FIELDS:
        return _yes_no(stored_value)
    if field_name in INTEGER_FIELDS or field_name in FLOAT_FIELDS:
        number = parse_number(stored_value)
        return _format_number(number) if number is not None else ""
    if field_name in QUARTILE_FIELDS:
        return _quartile_token(stored_value)
    if field_name in DATE_FIELDS:
        return str(stored_value)[:10]
    return stored_value
