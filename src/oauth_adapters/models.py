"""Base Pydantic model for oauth_adapters records.

All records and configuration models inherit from :class:`AdapterBaseModel` so
they share one configuration:

- ``extra="forbid"``: unknown fields are rejected
- ``frozen=True``: instances are immutable once built

Example:
    >>> from oauth_adapters.models import AdapterBaseModel
    >>>
    >>> class Endpoint(AdapterBaseModel):
    ...     url: str
    >>>
    >>> Endpoint(url="https://idp.example.com/token").model_dump()
    {'url': 'https://idp.example.com/token'}
"""

from pydantic import BaseModel, ConfigDict


class AdapterBaseModel(BaseModel):
    """Base model for all oauth_adapters Pydantic models.

    Models that must accept provider-defined extra fields (such as discovery
    documents) override ``model_config`` with ``extra="allow"``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)
