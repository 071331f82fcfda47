"""Recipient classification.

An identifier is an *internal account* when it is an :class:`AccountRef` or a
string shaped like an account record id: 15 or 18 alphanumeric characters
starting with the account key prefix. Everything else, including blank input,
is an external address.

Recipient lists are classified by their first element only. Mixed lists of
internal and external recipients are therefore not disambiguated.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from mailtrack.config import DEFAULT_ACCOUNT_PREFIX, DEFAULT_TEMPLATE_PREFIX

from .models import AccountRef, RecipientClassification


_RECORD_ID_PATTERN = re.compile(r"^[A-Za-z0-9]{15}(?:[A-Za-z0-9]{3})?$")


def is_record_id(value: Any, prefix: str) -> bool:
    if not isinstance(value, str):
        return False
    candidate = value.strip()
    return bool(_RECORD_ID_PATTERN.match(candidate)) and candidate.startswith(prefix)


@dataclass(frozen=True)
class RecipientClassifier:
    account_prefix: str = DEFAULT_ACCOUNT_PREFIX
    template_prefix: str = DEFAULT_TEMPLATE_PREFIX

    def classify(self, identifier: Any) -> RecipientClassification:
        if isinstance(identifier, AccountRef):
            return RecipientClassification.INTERNAL_ACCOUNT
        if is_record_id(identifier, self.account_prefix):
            return RecipientClassification.INTERNAL_ACCOUNT
        return RecipientClassification.EXTERNAL_ADDRESS

    def classify_recipients(self, recipients: Optional[Sequence[Any]]) -> RecipientClassification:
        if not recipients:
            return RecipientClassification.EXTERNAL_ADDRESS
        return self.classify(recipients[0])

    def is_internal(self, identifier: Any) -> bool:
        return self.classify(identifier) is RecipientClassification.INTERNAL_ACCOUNT

    def is_template_id(self, value: Any) -> bool:
        return is_record_id(value, self.template_prefix)


_DEFAULT = RecipientClassifier()


def classify(identifier: Any) -> RecipientClassification:
    return _DEFAULT.classify(identifier)
