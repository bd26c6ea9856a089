# usage_billing/errors.py
"""
Error types raised by the billing pipeline.

Every error carries one or more human-readable lines. The API renders them as
{"error": "<line>"} for a single line or {"error": ["<line>", ...]} for several,
most general line first.
"""

from typing import List, Sequence, Union


class BillingError(Exception):
    status_code = 500

    def __init__(self, messages: Union[str, Sequence[str]]):
        if isinstance(messages, str):
            messages = [messages]
        self.messages: List[str] = list(messages)
        super().__init__("\n".join(self.messages))

    @property
    def payload(self) -> Union[str, List[str]]:
        if len(self.messages) == 1:
            return self.messages[0]
        return list(self.messages)


class MalformedRequest(BillingError):
    status_code = 400


class SchemaViolation(BillingError):
    status_code = 400


class BusinessRuleViolation(BillingError):
    status_code = 400


class NotFound(BillingError):
    status_code = 404


class Conflict(BillingError):
    status_code = 409


class StorageFailure(BillingError):
    status_code = 500
