"""
必填字段规则表

根据 (成果类型, 已选收录类别, 目标检索类型) 计算当前必填字段及数值阈值，
界面提示与提交前校验共用这一份规则。

约定：
- 纯函数，无 I/O，无隐藏状态，同样输入得到同样输出
- 返回值中的 cleared 集合必须由调用方在切换类别 / 检索类型时同步清空，
  避免上一次选择遗留的指标（例如 sjr）被悄悄再次提交
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from app.schemas.contribution import ConferenceSubType, IndexingCategory, Quartile, TargetedResearchType
from app.services.contribution.codec import to_canonical


@dataclass(frozen=True)
class Constraint:
    """
    单个必填字段的取值约束

    - kind="numeric": 必须可解析为数字，可带下限（minimum / exclusive_minimum）与上限
    - kind="enum": 必须是 choices 中的一个
    """

    kind: str
    minimum: Optional[float] = None
    exclusive_minimum: bool = False
    maximum: Optional[float] = None
    choices: Optional[FrozenSet[str]] = None

    def describe(self) -> str:
        if self.kind == "enum":
            return "one of " + ", ".join(sorted(self.choices or ()))
        parts = []
        if self.minimum is not None:
            op = ">" if self.exclusive_minimum else ">="
            parts.append(f"{op} {self.minimum:g}")
        if self.maximum is not None:
            parts.append(f"<= {self.maximum:g}")
        return " and ".join(parts) or "a number"


@dataclass(frozen=True)
class RequiredFieldSet:
    """必填字段（表单命名）→ 约束（None 表示只要求非空），以及需要清空的字段"""

    required: Mapping[str, Optional[Constraint]] = field(default_factory=dict)
    cleared: FrozenSet[str] = frozenset()

    def __contains__(self, field_name: str) -> bool:
        return field_name in self.required

    def constraint_for(self, field_name: str) -> Optional[Constraint]:
        return self.required.get(field_name)


NUMERIC = Constraint(kind="numeric")

QUARTILE_CHOICES: FrozenSet[str] = frozenset(q.value for q in Quartile)
RESEARCH_TYPE_CHOICES: FrozenSet[str] = frozenset(t.value for t in TargetedResearchType)
CONFERENCE_SUB_TYPES: FrozenSet[str] = frozenset(s.value for s in ConferenceSubType)

SUBSIDIARY_IMPACT_FACTOR_FLOOR = 20.0
NAAS_RATING_FLOOR = 6.0

# 触发 quartile + sjr 的类别
QUARTILE_CATEGORIES: FrozenSet[str] = frozenset({
    IndexingCategory.SCOPUS.value,
    IndexingCategory.ABDC_SCOPUS_WOS.value,
})
# 触发 impactFactor 的类别
IMPACT_FACTOR_CATEGORIES: FrozenSet[str] = frozenset({
    IndexingCategory.NATURE_SCIENCE_LANCET_CELL_NEJM.value,
    IndexingCategory.SUBSIDIARY_IF_ABOVE_20.value,
    IndexingCategory.SCIE_WOS.value,
    IndexingCategory.ABDC_SCOPUS_WOS.value,
})

# 选择目标检索类型时需要清空（且不再必填）的字段
# TODO: naasRating 是否也应随检索类型切换清空，待教务处确认 NAAS 与检索类型的关系
CLEARED_BY_RESEARCH_TYPE: Dict[str, FrozenSet[str]] = {
    TargetedResearchType.SCOPUS.value: frozenset({"impactFactor"}),
    TargetedResearchType.WOS.value: frozenset({"sjr", "quartile"}),
    TargetedResearchType.BOTH.value: frozenset(),
}

BOOK_TYPES: FrozenSet[str] = frozenset({"book", "book_chapter"})


def _token(value: Any) -> str:
    if value is None:
        return ""
    return str(getattr(value, "value", value)).strip()


def _is_no(value: Any) -> bool:
    if isinstance(value, bool):
        return not value
    return _token(value).lower() in ("no", "false")


def _category_tokens(categories: Optional[Iterable[Any]]) -> FrozenSet[str]:
    if categories is None:
        return frozenset()
    if isinstance(categories, str):
        categories = categories.split(",")
    return frozenset(t for t in (_token(c) for c in categories) if t)


def _research_paper(categories: FrozenSet[str], research_type: Any) -> RequiredFieldSet:
    required: Dict[str, Optional[Constraint]] = {
        "targetedResearchType": Constraint(kind="enum", choices=RESEARCH_TYPE_CHOICES),
        "indexingCategories": None,
    }

    if categories & QUARTILE_CATEGORIES:
        required["quartile"] = Constraint(kind="enum", choices=QUARTILE_CHOICES)
        required["sjr"] = NUMERIC

    if categories & IMPACT_FACTOR_CATEGORIES:
        if "subsidiary_if_above_20" in categories:
            required["impactFactor"] = Constraint(
                kind="numeric",
                minimum=SUBSIDIARY_IMPACT_FACTOR_FLOOR,
                exclusive_minimum=True,
            )
        else:
            required["impactFactor"] = NUMERIC

    if "naas_rating_6_plus" in categories:
        required["naasRating"] = Constraint(kind="numeric", minimum=NAAS_RATING_FLOOR)

    selected = to_canonical("targetedResearchType", _token(research_type)) if research_type else ""
    cleared = CLEARED_BY_RESEARCH_TYPE.get(selected, frozenset())
    for name in cleared:
        required.pop(name, None)

    return RequiredFieldSet(required=required, cleared=cleared)


def _book(publication_type: str, communicated_with_official_id: Any) -> RequiredFieldSet:
    required: Dict[str, Optional[Constraint]] = {
        "publisherName": None,
        "isbn": None,
        "publicationDate": None,
        "nationalInternational": None,
        "bookIndexingType": None,
    }
    if publication_type == "book":
        required["bookPublicationType"] = None
    if _is_no(communicated_with_official_id):
        required["personalEmail"] = None
    return RequiredFieldSet(required=required)


def _conference(sub_type: str, communicated_with_official_id: Any) -> RequiredFieldSet:
    required: Dict[str, Optional[Constraint]] = {
        "conferenceSubType": Constraint(kind="enum", choices=CONFERENCE_SUB_TYPES),
    }

    if sub_type in ("paper_indexed_scopus", "paper_not_indexed"):
        required["conferenceType"] = None
        required["publicationDate"] = None
        if sub_type == "paper_indexed_scopus":
            required["proceedingsQuartile"] = None
        if _is_no(communicated_with_official_id):
            required["personalEmail"] = None
    elif sub_type in ("keynote_speaker_invited_talks", "organizer_coordinator_member"):
        required["venue"] = None
        required["topic"] = None
        required["conferenceDate"] = None
        if sub_type == "organizer_coordinator_member":
            required["eventCategory"] = None

    return RequiredFieldSet(required=required)


def _grant() -> RequiredFieldSet:
    return RequiredFieldSet(required={
        "title": None,
        "submittedAmount": Constraint(kind="numeric", minimum=0.0, exclusive_minimum=True),
    })


def compute_required(
    publication_type: Any,
    categories: Optional[Iterable[Any]] = None,
    research_type: Any = None,
    *,
    communicated_with_official_id: Any = None,
    conference_sub_type: Any = None,
) -> RequiredFieldSet:
    """
    计算必填字段集合

    Args:
        publication_type: 成果类型
        categories: 已选收录类别（仅 research_paper 使用）
        research_type: 目标检索类型 scopus / wos / both（仅 research_paper 使用）
        communicated_with_official_id: 是否使用官方邮箱沟通（book / book_chapter / conference_paper）
        conference_sub_type: 会议子类型（conference_paper）

    Returns:
        RequiredFieldSet；未知成果类型返回空集合
    """
    kind = _token(publication_type)
    if kind == "research_paper":
        return _research_paper(_category_tokens(categories), research_type)
    if kind in BOOK_TYPES:
        return _book(kind, communicated_with_official_id)
    if kind == "conference_paper":
        return _conference(_token(conference_sub_type), communicated_with_official_id)
    if kind == "grant":
        return _grant()
    return RequiredFieldSet()
