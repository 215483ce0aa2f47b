"""Table shapes read from the two application catalogs.

Only the tables and columns listed here are relied on. Both applications store
timestamps as float seconds since 2001-01-01 UTC.
"""
from __future__ import annotations

import sqlalchemy as sa

source_metadata = sa.MetaData()

source_folder = sa.Table(
    "ZFOLDER",
    source_metadata,
    sa.Column("Z_PK", sa.Integer, primary_key=True),
    sa.Column("ZNAME", sa.String),
    sa.Column("ZPARENT", sa.Integer),
)

source_album = sa.Table(
    "ZALBUM",
    source_metadata,
    sa.Column("Z_PK", sa.Integer, primary_key=True),
    sa.Column("ZNAME", sa.String),
    sa.Column("ZFOLDER", sa.Integer),
)

source_image = sa.Table(
    "ZIMAGE",
    source_metadata,
    sa.Column("Z_PK", sa.Integer, primary_key=True),
    sa.Column("ZFILENAME", sa.String),
)

source_album_image = sa.Table(
    "ZALBUMIMAGE",
    source_metadata,
    sa.Column("ZALBUM", sa.Integer),
    sa.Column("ZIMAGE", sa.Integer),
)

source_variant = sa.Table(
    "ZVARIANT",
    source_metadata,
    sa.Column("Z_PK", sa.Integer, primary_key=True),
    sa.Column("ZUUID", sa.String),
    sa.Column("ZIMAGE", sa.Integer),
    sa.Column("ZPOSITION", sa.Integer),
    sa.Column("ZMODIFICATIONDATE", sa.Float),
)

destination_metadata = sa.MetaData()

FOLDER_KIND = 4000
ALBUM_KIND = 2

destination_album = sa.Table(
    "ZGENERICALBUM",
    destination_metadata,
    sa.Column("Z_PK", sa.Integer, primary_key=True),
    sa.Column("ZTITLE", sa.String),
    sa.Column("ZKIND", sa.Integer),
    sa.Column("ZPARENTFOLDER", sa.Integer),
)

destination_asset = sa.Table(
    "ZASSET",
    destination_metadata,
    sa.Column("Z_PK", sa.Integer, primary_key=True),
    sa.Column("ZUUID", sa.String),
    sa.Column("ZADDEDDATE", sa.Float),
    sa.Column("ZTRASHEDSTATE", sa.Integer, default=0),
)

destination_attributes = sa.Table(
    "ZADDITIONALASSETATTRIBUTES",
    destination_metadata,
    sa.Column("ZASSET", sa.Integer),
    sa.Column("ZORIGINALFILENAME", sa.String),
)

destination_album_assets = sa.Table(
    "Z_ALBUMASSETS",
    destination_metadata,
    sa.Column("ZALBUM", sa.Integer),
    sa.Column("ZASSET", sa.Integer),
)


def expected_columns(metadata: sa.MetaData) -> dict[str, set[str]]:
    return {table.name: {column.name for column in table.columns} for table in metadata.sorted_tables}


SOURCE_TABLES = expected_columns(source_metadata)
DESTINATION_TABLES = expected_columns(destination_metadata)
