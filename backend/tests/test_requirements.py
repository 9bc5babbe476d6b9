import pytest

from app.schemas.contribution import ConferenceSubType, Quartile, TargetedResearchType
from app.services.contribution.codec import QUARTILE_DISPLAY, RESEARCH_TYPE_DISPLAY
from app.services.contribution.requirements import (
    CONFERENCE_SUB_TYPES,
    QUARTILE_CHOICES,
    RESEARCH_TYPE_CHOICES,
    compute_required,
)


def test_research_paper_always_requires_type_and_categories():
    result = compute_required("research_paper", [], None)
    assert set(result.required) == {"targetedResearchType", "indexingCategories"}
    assert result.cleared == frozenset()


@pytest.mark.parametrize("category", ["scopus", "abdc_scopus_wos"])
def test_quartile_categories_require_quartile_and_sjr(category):
    result = compute_required("research_paper", [category], "both")
    assert "quartile" in result
    assert "sjr" in result
    assert result.constraint_for("quartile").choices == QUARTILE_CHOICES
    assert result.constraint_for("sjr").minimum is None


@pytest.mark.parametrize("category", [
    "nature_science_lancet_cell_nejm",
    "subsidiary_if_above_20",
    "scie_wos",
    "abdc_scopus_wos",
])
def test_impact_factor_categories(category):
    result = compute_required("research_paper", [category], "both")
    assert "impactFactor" in result


def test_subsidiary_threshold_is_strict():
    constraint = compute_required("research_paper", ["subsidiary_if_above_20"], "both").constraint_for("impactFactor")
    assert constraint.minimum == 20
    assert constraint.exclusive_minimum is True

    plain = compute_required("research_paper", ["scie_wos"], "both").constraint_for("impactFactor")
    assert plain.minimum is None


def test_naas_threshold_is_inclusive():
    constraint = compute_required("research_paper", ["naas_rating_6_plus"], "both").constraint_for("naasRating")
    assert constraint.minimum == 6
    assert constraint.exclusive_minimum is False


def test_categories_accumulate():
    result = compute_required(
        "research_paper",
        ["scopus", "scie_wos", "naas_rating_6_plus"],
        "both",
    )
    assert {"quartile", "sjr", "impactFactor", "naasRating"} <= set(result.required)


def test_scopus_research_type_clears_impact_factor():
    result = compute_required("research_paper", ["abdc_scopus_wos"], "scopus")
    assert result.cleared == frozenset({"impactFactor"})
    assert "impactFactor" not in result
    assert "quartile" in result


def test_wos_research_type_clears_sjr_and_quartile():
    result = compute_required("research_paper", ["abdc_scopus_wos"], "wos")
    assert result.cleared == frozenset({"sjr", "quartile"})
    assert "sjr" not in result
    assert "quartile" not in result
    assert "impactFactor" in result


def test_research_type_display_value_accepted():
    result = compute_required("research_paper", ["scopus"], "SCI/SCIE")
    assert result.cleared == frozenset({"sjr", "quartile"})


def test_categories_as_comma_string():
    result = compute_required("research_paper", "scopus, naas_rating_6_plus", "both")
    assert {"quartile", "sjr", "naasRating"} <= set(result.required)


def test_compute_required_is_deterministic():
    args = ("research_paper", ["scopus", "subsidiary_if_above_20"], "both")
    first = compute_required(*args)
    for _ in range(3):
        again = compute_required(*args)
        assert again.required == first.required
        assert again.cleared == first.cleared


def test_book_rules():
    result = compute_required("book", communicated_with_official_id="yes")
    assert set(result.required) == {
        "publisherName",
        "isbn",
        "publicationDate",
        "nationalInternational",
        "bookIndexingType",
        "bookPublicationType",
    }


def test_book_chapter_does_not_need_publication_type():
    result = compute_required("book_chapter", communicated_with_official_id="yes")
    assert "bookPublicationType" not in result


@pytest.mark.parametrize("publication_type", ["book", "book_chapter"])
def test_personal_email_required_when_not_official(publication_type):
    assert "personalEmail" in compute_required(publication_type, communicated_with_official_id="no")
    assert "personalEmail" in compute_required(publication_type, communicated_with_official_id=False)
    assert "personalEmail" not in compute_required(publication_type, communicated_with_official_id="yes")


def test_conference_indexed_scopus():
    result = compute_required(
        "conference_paper",
        conference_sub_type="paper_indexed_scopus",
        communicated_with_official_id="no",
    )
    assert {"conferenceSubType", "conferenceType", "publicationDate", "proceedingsQuartile", "personalEmail"} == set(
        result.required
    )
    assert result.constraint_for("conferenceSubType").choices == CONFERENCE_SUB_TYPES


def test_conference_not_indexed_skips_proceedings_quartile():
    result = compute_required("conference_paper", conference_sub_type="paper_not_indexed")
    assert "proceedingsQuartile" not in result
    assert "conferenceType" in result


def test_conference_keynote_and_organizer():
    keynote = compute_required("conference_paper", conference_sub_type="keynote_speaker_invited_talks")
    assert {"venue", "topic", "conferenceDate"} <= set(keynote.required)
    assert "eventCategory" not in keynote

    organizer = compute_required("conference_paper", conference_sub_type="organizer_coordinator_member")
    assert "eventCategory" in organizer


def test_grant_rules():
    result = compute_required("grant")
    assert set(result.required) == {"title", "submittedAmount"}
    assert result.constraint_for("submittedAmount").exclusive_minimum is True


def test_unknown_publication_type_is_empty():
    result = compute_required("patent")
    assert dict(result.required) == {}
    assert result.cleared == frozenset()


def test_enum_choices_follow_schema_enums():
    assert QUARTILE_CHOICES == {"top1", "top5", "q1", "q2", "q3", "q4"} == {q.value for q in Quartile}
    assert RESEARCH_TYPE_CHOICES == {t.value for t in TargetedResearchType}
    assert CONFERENCE_SUB_TYPES == {s.value for s in ConferenceSubType}
    # 展示文案覆盖每个取值
    assert set(QUARTILE_DISPLAY) == QUARTILE_CHOICES
    assert set(RESEARCH_TYPE_DISPLAY) == RESEARCH_TYPE_CHOICES
