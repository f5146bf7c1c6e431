"""
records.py — typed survey / classification / relation records

The three inputs are tab separated exports. Each row is validated into a
pydantic model; any schema violation aborts the run with MalformedRecordError
naming the file and the data row.
"""

import logging
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional, Type, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from assign_utils import canonical_handle, read_delimited_norm, split_list

logger = logging.getLogger("records")


class InputError(ValueError):
    """Fatal problem with the input data; no partial result is produced."""


class MalformedRecordError(InputError):
    def __init__(self, source: str, row: int, detail: str):
        self.source = source
        self.row = row
        self.detail = detail
        super().__init__(f"{source}: malformed record at row {row}: {detail}")


class DuplicateIdentityError(InputError):
    def __init__(self, handle: str):
        self.handle = handle
        super().__init__(f"Person '{handle}' appears more than once in the classifications.")


class UnknownFeedbackPhraseError(InputError):
    def __init__(self, handle: str, phrase: str):
        self.handle = handle
        self.phrase = phrase
        super().__init__(f"Feedback from '{handle}' uses unrecognized phrase '{phrase}'.")


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    # Columns that must be present but may hold an empty cell.
    blank_allowed: ClassVar[FrozenSet[str]] = frozenset()

    @model_validator(mode="before")
    @classmethod
    def blank_to_absent(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        out = {}
        for k, v in data.items():
            if isinstance(v, str) and not v.strip():
                if k in cls.blank_allowed:
                    out[k] = ""
                continue
            out[k] = v
        return out


class ClassificationRecord(_Record):
    blank_allowed: ClassVar[FrozenSet[str]] = frozenset(
        {"name", "secondary_handle", "github_username"}
    )

    name: str
    canonical_handle: str = Field(
        min_length=1, validation_alias=AliasChoices("canonical_handle", "school_username")
    )
    secondary_handle: str = Field(
        validation_alias=AliasChoices("secondary_handle", "github_username")
    )
    categories: Optional[str] = Field(
        None, validation_alias=AliasChoices("categories", "classifications")
    )

    @field_validator("canonical_handle", "secondary_handle")
    @classmethod
    def canonicalize_handles(cls, v: str) -> str:
        return canonical_handle(v)

    def category_labels(self) -> List[str]:
        return split_list(self.categories)


class FeedbackRecord(_Record):
    blank_allowed: ClassVar[FrozenSet[str]] = frozenset(
        {"email", "email_addr", "secondary_handle", "github_username", "solo"}
    )

    email: str = Field(validation_alias=AliasChoices("email", "email_addr"))
    canonical_handle: str = Field(
        min_length=1, validation_alias=AliasChoices("canonical_handle", "school_username")
    )
    secondary_handle: str = Field(
        validation_alias=AliasChoices("secondary_handle", "github_username")
    )
    solo: str
    last_teammate_secondary_handle: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("last_teammate_secondary_handle", "last_teammate_github_username"),
    )
    last_teammate_feedback: Optional[str] = None
    last_teammate_additional_feedback: Optional[str] = None
    veto0: Optional[str] = None
    veto1: Optional[str] = None
    veto2: Optional[str] = None
    want0: Optional[str] = None
    want1: Optional[str] = None
    want2: Optional[str] = None

    @field_validator("canonical_handle", "secondary_handle")
    @classmethod
    def canonicalize_handles(cls, v: str) -> str:
        return canonical_handle(v)

    @property
    def vetoes(self) -> List[Optional[str]]:
        return [self.veto0, self.veto1, self.veto2]

    @property
    def wants(self) -> List[Optional[str]]:
        return [self.want0, self.want1, self.want2]


class RelationRecord(_Record):
    subject_category: str = Field(
        min_length=1, validation_alias=AliasChoices("subject_category", "class")
    )
    object_category: str = Field(
        min_length=1, validation_alias=AliasChoices("object_category", "class_other")
    )
    polarity: str = Field(validation_alias=AliasChoices("polarity", "relation"))

    @field_validator("polarity")
    @classmethod
    def check_polarity(cls, v: str) -> str:
        if "+" not in v and "-" not in v:
            raise ValueError("polarity must contain '+' and/or '-'")
        return v

    @property
    def attracts(self) -> bool:
        return "+" in self.polarity

    @property
    def repels(self) -> bool:
        return "-" in self.polarity


R = TypeVar("R", bound=_Record)


def parse_records(rows: List[Dict[str, Any]], model: Type[R], source: str = "<records>") -> List[R]:
    out = []
    for row_no, row in enumerate(rows, start=1):
        try:
            out.append(model.model_validate(row))
        except ValidationError as exc:
            errs = "; ".join(
                f"{'.'.join(str(p) for p in e['loc']) or 'row'}: {e['msg']}" for e in exc.errors()
            )
            raise MalformedRecordError(source, row_no, errs) from exc
    return out


def load_records(path: str, model: Type[R], delimiter: str = "\t") -> List[R]:
    rows = read_delimited_norm(path, delimiter=delimiter)
    records = parse_records(rows, model, source=path)
    logger.info(f"Loaded {len(records)} {model.__name__} rows from {path}")
    return records


def load_classifications(path: str, delimiter: str = "\t") -> List[ClassificationRecord]:
    return load_records(path, ClassificationRecord, delimiter)


def load_feedback(path: str, delimiter: str = "\t") -> List[FeedbackRecord]:
    return load_records(path, FeedbackRecord, delimiter)


def load_relations(path: str, delimiter: str = "\t") -> List[RelationRecord]:
    return load_records(path, RelationRecord, delimiter)
