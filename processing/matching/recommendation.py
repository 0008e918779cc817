"""
Recommendation ladder fusing per-field verdicts into a single tier.

Rules, first match wins:
1. Name is NO_MATCH                                      → NO_MATCH
2. No populated field is NO_MATCH and one is PERFECT     → MATCH
3. At least two populated fields are PERFECT             → MATCH
4. Name PERFECT and another populated field PERFECT/CLOSE → REVIEW
5. Name CLOSE and another populated field PERFECT        → REVIEW
6. Name CLOSE and another populated field CLOSE          → REVIEW
7. Otherwise                                             → NO_MATCH
"""

from processing.matching.types import (
    FieldVerdict,
    FieldVerdicts,
    LocalRecord,
    RecommendationTier,
)


def recommend(
    name: FieldVerdict,
    email: FieldVerdict,
    phone: FieldVerdict,
    has_email: bool,
    has_phone: bool,
) -> RecommendationTier:
    """
    Fuse field verdicts into a tier.

    Email and phone only count when the local record has them, whatever
    verdict is passed in for an absent field.
    """
    if name is FieldVerdict.NO_MATCH:
        return RecommendationTier.NO_MATCH

    others = []
    if has_email:
        others.append(email)
    if has_phone:
        others.append(phone)
    populated = [name] + others

    perfect_count = sum(1 for v in populated if v is FieldVerdict.PERFECT)
    no_match_count = sum(1 for v in populated if v is FieldVerdict.NO_MATCH)

    if no_match_count == 0 and perfect_count >= 1:
        return RecommendationTier.MATCH

    if perfect_count >= 2:
        return RecommendationTier.MATCH

    other_perfect = FieldVerdict.PERFECT in others
    other_close = FieldVerdict.CLOSE in others

    if name is FieldVerdict.PERFECT and (other_perfect or other_close):
        return RecommendationTier.REVIEW

    if name is FieldVerdict.CLOSE and other_perfect:
        return RecommendationTier.REVIEW

    if name is FieldVerdict.CLOSE and other_close:
        return RecommendationTier.REVIEW

    return RecommendationTier.NO_MATCH


def recommend_for(verdicts: FieldVerdicts, record: LocalRecord) -> RecommendationTier:
    return recommend(
        verdicts.name,
        verdicts.email,
        verdicts.phone,
        has_email=record.has_email,
        has_phone=record.has_phone,
    )
