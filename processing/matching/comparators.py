"""
Field comparators for people matching.

Each comparator returns a three-valued FieldVerdict for one field:
name, email or phone.
"""

from typing import Iterable, Optional

from processing.matching.nicknames import NicknameIndex
from processing.matching.normalizer import (
    mail_provider,
    normalize_email,
    normalize_name,
    normalize_phone,
    similarity,
    split_email,
)
from processing.matching.types import CandidateRecord, FieldVerdict, FieldVerdicts, LocalRecord


class FieldComparator:
    """
    Compares a local record against a directory candidate field by field.

    Name comparison:
    1. Normalized names equal → PERFECT
    2. Family names ≥90% similar → nickname link is CLOSE,
       otherwise given-name similarity ≥95% PERFECT / ≥85% CLOSE
    3. Whole-name similarity ≥95% PERFECT / ≥85% CLOSE
    """

    FAMILY_NAME_THRESHOLD = 0.90
    PERFECT_THRESHOLD = 0.95
    CLOSE_THRESHOLD = 0.85
    EMAIL_DOMAIN_THRESHOLD = 0.80
    PHONE_SUFFIX_DIGITS = 7

    def __init__(self, nicknames: Optional[NicknameIndex] = None):
        self.nicknames = nicknames if nicknames is not None else NicknameIndex.empty()

    def compare(self, record: LocalRecord, candidate: CandidateRecord) -> FieldVerdicts:
        """Run all three comparators. Absent local fields are NO_MATCH."""
        email = (
            self.compare_emails(record.email, candidate.emails)
            if record.has_email else FieldVerdict.NO_MATCH
        )
        phone = (
            self.compare_phones(record.phone, candidate.phones)
            if record.has_phone else FieldVerdict.NO_MATCH
        )
        return FieldVerdicts(
            name=self.compare_names(record.full_name, candidate.name),
            email=email,
            phone=phone,
        )

    def compare_names(self, local_name: Optional[str], candidate_name: Optional[str]) -> FieldVerdict:
        local = normalize_name(local_name)
        other = normalize_name(candidate_name)
        if not local or not other:
            return FieldVerdict.NO_MATCH

        if local == other:
            return FieldVerdict.PERFECT

        local_parts = local.split()
        other_parts = other.split()

        if len(local_parts) >= 2 and len(other_parts) >= 2:
            local_given, local_family = local_parts[0], local_parts[-1]
            other_given, other_family = other_parts[0], other_parts[-1]

            if similarity(local_family, other_family) >= self.FAMILY_NAME_THRESHOLD:
                if self.nicknames.are_linked(local_given, other_given):
                    return FieldVerdict.CLOSE

                verdict = self._grade(similarity(local_given, other_given))
                if verdict is not FieldVerdict.NO_MATCH:
                    return verdict

        return self._grade(similarity(local, other))

    def compare_emails(self, local_email: Optional[str], candidate_emails: Iterable[str]) -> FieldVerdict:
        local = normalize_email(local_email)
        others = [normalize_email(e) for e in candidate_emails or () if e]
        if not local or not others:
            return FieldVerdict.NO_MATCH

        if local in others:
            return FieldVerdict.PERFECT

        local_part, local_domain = split_email(local)
        for other in others:
            other_part, other_domain = split_email(other)

            if local_part == other_part:
                # Typo-level domain differences (".con" vs ".com")
                if similarity(local_domain, other_domain) >= self.EMAIL_DOMAIN_THRESHOLD:
                    return FieldVerdict.CLOSE
                local_provider = mail_provider(local_domain)
                if local_provider and local_provider == mail_provider(other_domain):
                    return FieldVerdict.CLOSE

            if local_domain and local_domain == other_domain:
                return FieldVerdict.CLOSE

        return FieldVerdict.NO_MATCH

    def compare_phones(self, local_phone: Optional[str], candidate_phones: Iterable[str]) -> FieldVerdict:
        local = normalize_phone(local_phone)
        others = [normalize_phone(p) for p in candidate_phones or ()]
        others = [p for p in others if p]
        if not local or not others:
            return FieldVerdict.NO_MATCH

        if local in others:
            return FieldVerdict.PERFECT

        n = self.PHONE_SUFFIX_DIGITS
        if len(local) >= n:
            suffix = local[-n:]
            if any(len(p) >= n and p[-n:] == suffix for p in others):
                return FieldVerdict.CLOSE

        return FieldVerdict.NO_MATCH

    def _grade(self, score: float) -> FieldVerdict:
        if score >= self.PERFECT_THRESHOLD:
            return FieldVerdict.PERFECT
        if score >= self.CLOSE_THRESHOLD:
            return FieldVerdict.CLOSE
        return FieldVerdict.NO_MATCH
