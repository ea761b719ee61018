# diffmerge/models/document.py

from typing import Optional

from pydantic import BaseModel, Field


class DocumentRef(BaseModel):
    """A document picked by the user; durable once the service assigns an id."""

    id: Optional[int] = None
    filename: str
    uploaded: bool = Field(default=False, exclude=True)
    content: Optional[bytes] = Field(default=None, exclude=True, repr=False)

    @property
    def is_durable(self) -> bool:
        return self.id is not None
