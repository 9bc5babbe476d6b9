"""
字段命名与字段分区

- 后端规范字段名 ↔ 表单字段名 的唯一双向映射表
- 每种成果类型的有效字段集合（表单命名）
- 字段语义类型：yes/no、列表、整数、浮点、日期
"""
from typing import Dict, FrozenSet

# 后端字段名 → 表单字段名；未列出的字段两侧同名
BACKEND_TO_FORM: Dict[str, str] = {
    "internationalAuthor": "hasInternationalAuthor",
    "foreignCollaborationsCount": "numForeignUniversities",
    "interdisciplinaryFromSgt": "isInterdisciplinary",
    "studentsFromSgt": "hasLpuStudents",
    "sdg_goals": "sdgGoals",
}

FORM_TO_BACKEND: Dict[str, str] = {v: k for k, v in BACKEND_TO_FORM.items()}


def to_form_name(backend_name: str) -> str:
    return BACKEND_TO_FORM.get(backend_name, backend_name)


def to_backend_name(form_name: str) -> str:
    return FORM_TO_BACKEND.get(form_name, form_name)


# 创建后不可修改的字段（表单命名）
IMMUTABLE_FIELDS: FrozenSet[str] = frozenset({"publicationType", "conferenceSubType"})

# 表单里以 yes/no 表示、后端以布尔存储的字段
YES_NO_FIELDS: FrozenSet[str] = frozenset({
    "hasInternationalAuthor",
    "isInterdisciplinary",
    "hasLpuStudents",
    "communicatedWithOfficialId",
    "isPresenter",
    "fullPaper",
    "conferenceBestPaperAward",
    "virtualConference",
    "conferenceHeldAtSgt",
    "industryCollaboration",
    "centralFacilityUsed",
    "attendedVirtual",
})

LIST_FIELDS: FrozenSet[str] = frozenset({"sdgGoals", "indexingCategories"})

INTEGER_FIELDS: FrozenSet[str] = frozenset({"numForeignUniversities", "totalPresenters"})

FLOAT_FIELDS: FrozenSet[str] = frozenset({
    "impactFactor",
    "sjr",
    "naasRating",
    "subsidiaryImpactFactor",
    "submittedAmount",
})

DATE_FIELDS: FrozenSet[str] = frozenset({"publicationDate", "conferenceDate"})

QUARTILE_FIELDS: FrozenSet[str] = frozenset({"quartile", "proceedingsQuartile"})


_AUTHORSHIP = frozenset({
    "title",
    "hasInternationalAuthor",
    "numForeignUniversities",
    "isInterdisciplinary",
    "hasLpuStudents",
    "sdgGoals",
    "weblink",
    "publicationDate",
})

_BOOK_COMMON = _AUTHORSHIP | {
    "bookIndexingType",
    "communicatedWithOfficialId",
    "personalEmail",
    "editors",
    "nationalInternational",
    "isbn",
    "publisherName",
    "facultyRemarks",
}

# 每种成果类型有效的表单字段；分区外的字段在校验和提交时忽略
FIELD_PARTITIONS: Dict[str, FrozenSet[str]] = {
    "research_paper": frozenset(_AUTHORSHIP | {
        "targetedResearchType",
        "indexingCategories",
        "impactFactor",
        "sjr",
        "naasRating",
        "subsidiaryImpactFactor",
        "quartile",
        "journalName",
        "paperweblink",
        "issue",
        "pageNumbers",
        "doi",
        "issn",
        "publisherName",
        "publisherLocation",
        "publicationStatus",
    }),
    "book": frozenset(_BOOK_COMMON | {"bookPublicationType"}),
    "book_chapter": frozenset(_BOOK_COMMON | {"bookTitle", "chapterNumber", "pageNumbers"}),
    "conference_paper": frozenset({
        "title",
        "sdgGoals",
        "publicationDate",
        "conferenceSubType",
        "conferenceName",
        "conferenceType",
        "proceedingsTitle",
        "proceedingsQuartile",
        "indexedIn",
        "conferenceHeldLocation",
        "eventCategory",
        "totalPresenters",
        "isPresenter",
        "fullPaper",
        "paperDoi",
        "issnIsbnIssueNo",
        "priorityFundingArea",
        "conferenceDate",
        "conferenceBestPaperAward",
        "virtualConference",
        "conferenceHeldAtSgt",
        "isInterdisciplinary",
        "hasLpuStudents",
        "industryCollaboration",
        "centralFacilityUsed",
        "conferenceRole",
        "venue",
        "topic",
        "organizerRole",
        "attendedVirtual",
        "communicatedWithOfficialId",
        "personalEmail",
    }),
    "grant": frozenset({
        "title",
        "sdgGoals",
        "fundingAgency",
        "projectType",
        "projectCategory",
        "submittedAmount",
    }),
}


def partition_for(publication_type: str) -> FrozenSet[str]:
    return FIELD_PARTITIONS.get(publication_type, frozenset())
