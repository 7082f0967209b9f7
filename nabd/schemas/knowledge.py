from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, StringConstraints

DocumentText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class VectorStoreDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: DocumentText
    title: DocumentText
    source: DocumentText
    content: DocumentText


class VectorSearchResult(VectorStoreDocument):
    score: float
