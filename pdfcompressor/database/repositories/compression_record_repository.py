from psycopg.rows import dict_row

from pdfcompressor.database.connection import get_connection
from pdfcompressor.database.models import CompressionRecord

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS pdf_compression_records (
    id BIGSERIAL PRIMARY KEY,
    original_filename VARCHAR(255) NOT NULL,
    compressed_filename VARCHAR(255) NOT NULL,
    original_size BIGINT NOT NULL,
    compressed_size BIGINT NOT NULL,
    compression_ratio NUMERIC(7, 2) NOT NULL,
    target_size VARCHAR(20) NOT NULL,
    compression_method VARCHAR(64) NOT NULL,
    passes_used INTEGER NOT NULL,
    user_ip VARCHAR(45) NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""


class CompressionRecordRepository:
    """Database operations for the pdf_compression_records table."""

    def ensure_schema(self) -> None:
        with get_connection() as conn:
            conn.execute(CREATE_TABLE_SQL)
            conn.commit()

    def save(self, record: CompressionRecord) -> int:
        """Insert a usage record and return its id."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO pdf_compression_records
                    (original_filename, compressed_filename, original_size,
                     compressed_size, compression_ratio, target_size,
                     compression_method, passes_used, user_ip)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING id
                    """,
                    (
                        record.original_filename,
                        record.compressed_filename,
                        record.original_size,
                        record.compressed_size,
                        record.compression_ratio,
                        record.target_size,
                        record.compression_method,
                        record.passes_used,
                        record.user_ip,
                    ),
                )
                row = cur.fetchone()
            conn.commit()

        if row is None:
            raise RuntimeError("INSERT into pdf_compression_records returned no id")
        return int(row[0])

    def find_by_id(self, record_id: int) -> CompressionRecord | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, original_filename, compressed_filename, original_size,
                           compressed_size, compression_ratio, target_size,
                           compression_method, passes_used, user_ip, created_at
                    FROM pdf_compression_records
                    WHERE id = %s
                    """,
                    (record_id,),
                )
                row = cur.fetchone()

        if row is None:
            return None

        return CompressionRecord(
            id=row["id"],
            original_filename=row["original_filename"],
            compressed_filename=row["compressed_filename"],
            original_size=row["original_size"],
            compressed_size=row["compressed_size"],
            compression_ratio=float(row["compression_ratio"]),
            target_size=row["target_size"],
            compression_method=row["compression_method"],
            passes_used=row["passes_used"],
            user_ip=row["user_ip"],
            created_at=row["created_at"],
        )

    def delete_older_than(self, days: int) -> int:
        """Delete records older than ``days`` days; return how many were removed."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    DELETE FROM pdf_compression_records
                    WHERE created_at < NOW() - make_interval(days => %s)
                    """,
                    (days,),
                )
                deleted = cur.rowcount
            conn.commit()
        return deleted
