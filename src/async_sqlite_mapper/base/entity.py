from typing import Optional

from pydantic import BaseModel, Field


class SQLiteTable(BaseModel):
    """
    Convenience base class for pydantic entities stored in a SQLite table.

    ``row_id`` receives the implicit SQLite rowid of the stored row. It is
    filled in on insert and select and is used to target updates and deletes.
    Selected rows are materialized with ``model_construct`` and then assigned
    column by column, so required fields are allowed and values read back
    are not re-validated.
    """

    row_id: Optional[int] = Field(default=None, exclude=True)
