from typing import Mapping, Optional

from sqlalchemy import Enum as SAEnum


def normalise_enum_value(value: str) -> str:
    """Lower-case and snake-case a stored or submitted enum spelling."""
    return value.strip().lower().replace("-", "_").replace(" ", "_")


class CaseInsensitiveEnum(SAEnum):
    """Enum column stored as ``.value`` in a plain string column.

    Rows written by older clients used other spellings ("Quote Sent",
    "quote-sent") and sometimes retired names. ``aliases`` maps retired
    names to current values; it is applied only when reading.
    """

    def __init__(self, enum_cls, aliases: Optional[Mapping[str, str]] = None, **kwargs):
        self._enum_cls = enum_cls
        self._aliases = dict(aliases or {})
        self._enum_kwargs = kwargs.copy()
        kwargs.setdefault("values_callable", lambda enum: [e.value for e in enum])
        kwargs.setdefault("native_enum", False)
        super().__init__(enum_cls, **kwargs)

    def adapt(self, impltype, **kw):
        params = {**self._enum_kwargs, **kw}
        return CaseInsensitiveEnum(self._enum_cls, aliases=self._aliases, **params)

    def _chain(self, parent, coerce):
        def process(value):
            if value is None:
                return None
            value = coerce(value)
            return parent(value) if parent else value

        return process

    def bind_processor(self, dialect):
        def coerce(value):
            if isinstance(value, str):
                return normalise_enum_value(value)
            return value.value

        return self._chain(super().bind_processor(dialect), coerce)

    def result_processor(self, dialect, coltype):
        def coerce(value):
            if not isinstance(value, str):
                return value
            value = normalise_enum_value(value)
            return self._aliases.get(value, value)

        return self._chain(super().result_processor(dialect, coltype), coerce)
