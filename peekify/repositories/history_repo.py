import uuid
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import text

from db.postgres_db import get_db_session, row_to_dict
from models.models import Play

PLAY_COLUMNS = """
    id, track_id, track_name, artist_name, album_name, album_art_url,
    track_uri, duration_ms, played_at_utc
"""


def _range_clause(start_utc: Optional[str], end_utc: Optional[str]) -> str:
    clause = ""
    if start_utc:
        clause += " AND played_at_utc >= :start_utc"
    if end_utc:
        clause += " AND played_at_utc < :end_utc"
    return clause


class HistoryRepository:
    """Repository for a user's listening history (one row per play)."""

    def insert_plays(self, user_id: str, plays: Iterable[Play]) -> int:
        """
        Insert plays, skipping any already recorded for the same played_at time.
        Returns the number of new rows.
        """
        inserted = 0
        with get_db_session() as session:
            for play in plays:
                result = session.execute(
                    text("""
                        INSERT INTO listening_history(
                            id, user_id, track_id, track_name, artist_name, album_name,
                            album_art_url, track_uri, duration_ms, played_at_utc
                        ) VALUES (
                            :id, :user_id, :track_id, :track_name, :artist_name, :album_name,
                            :album_art_url, :track_uri, :duration_ms, :played_at_utc
                        )
                        ON CONFLICT (user_id, played_at_utc) DO NOTHING;
                    """),
                    {
                        "id": str(uuid.uuid4()),
                        "user_id": user_id,
                        "track_id": play.track_id,
                        "track_name": play.track_name,
                        "artist_name": play.artist_name,
                        "album_name": play.album_name,
                        "album_art_url": play.album_art_url,
                        "track_uri": play.track_uri,
                        "duration_ms": play.duration_ms,
                        "played_at_utc": play.played_at_utc,
                    },
                )
                inserted += result.rowcount or 0
        return inserted

    def latest_played_at(self, user_id: str) -> Optional[str]:
        with get_db_session() as session:
            value = session.execute(
                text("SELECT MAX(played_at_utc) FROM listening_history WHERE user_id = :user_id;"),
                {"user_id": user_id},
            ).scalar()
            return str(value) if value else None

    def list_plays(
        self,
        user_id: str,
        start_utc: Optional[str] = None,
        end_utc: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Plays newest first, optionally bounded to [start_utc, end_utc)."""
        with get_db_session() as session:
            rows = session.execute(
                text(f"""
                    SELECT {PLAY_COLUMNS}
                    FROM listening_history
                    WHERE user_id = :user_id {_range_clause(start_utc, end_utc)}
                    ORDER BY played_at_utc DESC
                    LIMIT :limit OFFSET :offset;
                """),
                {"user_id": user_id, "start_utc": start_utc, "end_utc": end_utc, "limit": limit, "offset": offset},
            ).fetchall()
            return [dict(row._mapping) for row in rows]

    def top_track_between(self, user_id: str, start_utc: str, end_utc: str) -> Optional[Dict[str, Any]]:
        """
        Most played track in [start_utc, end_utc).
        Ties go to the track played most recently, then to the lowest track id.
        """
        with get_db_session() as session:
            row = session.execute(
                text("""
                    SELECT
                        track_id,
                        MAX(track_name) AS track_name,
                        MAX(artist_name) AS artist_name,
                        MAX(album_name) AS album_name,
                        MAX(album_art_url) AS album_art_url,
                        MAX(track_uri) AS track_uri,
                        MAX(duration_ms) AS duration_ms,
                        COUNT(*) AS play_count,
                        MAX(played_at_utc) AS last_played_at_utc
                    FROM listening_history
                    WHERE user_id = :user_id AND played_at_utc >= :start_utc AND played_at_utc < :end_utc
                    GROUP BY track_id
                    ORDER BY play_count DESC, last_played_at_utc DESC, track_id ASC
                    LIMIT 1;
                """),
                {"user_id": user_id, "start_utc": start_utc, "end_utc": end_utc},
            ).fetchone()
            return row_to_dict(row)

    def get_stats(self, user_id: str, start_utc: str, top_n: int = 5) -> Dict[str, Any]:
        """Aggregates over plays since start_utc."""
        params = {"user_id": user_id, "start_utc": start_utc, "top_n": top_n}
        with get_db_session() as session:
            totals = session.execute(
                text("""
                    SELECT
                        COUNT(*) AS total_plays,
                        COUNT(DISTINCT track_id) AS unique_tracks,
                        COUNT(DISTINCT artist_name) AS unique_artists,
                        COALESCE(SUM(duration_ms), 0) AS total_ms
                    FROM listening_history
                    WHERE user_id = :user_id AND played_at_utc >= :start_utc;
                """),
                params,
            ).fetchone()

            top_tracks = session.execute(
                text("""
                    SELECT track_id, MAX(track_name) AS track_name, MAX(artist_name) AS artist_name,
                           MAX(album_art_url) AS album_art_url, COUNT(*) AS play_count
                    FROM listening_history
                    WHERE user_id = :user_id AND played_at_utc >= :start_utc
                    GROUP BY track_id
                    ORDER BY play_count DESC, track_id ASC
                    LIMIT :top_n;
                """),
                params,
            ).fetchall()

            top_artists = session.execute(
                text("""
                    SELECT artist_name, COUNT(*) AS play_count
                    FROM listening_history
                    WHERE user_id = :user_id AND played_at_utc >= :start_utc AND artist_name IS NOT NULL
                    GROUP BY artist_name
                    ORDER BY play_count DESC, artist_name ASC
                    LIMIT :top_n;
                """),
                params,
            ).fetchall()

        return {
            "total_plays": int(totals[0] or 0),
            "unique_tracks": int(totals[1] or 0),
            "unique_artists": int(totals[2] or 0),
            "total_ms": int(totals[3] or 0),
            "top_tracks": [dict(row._mapping) for row in top_tracks],
            "top_artists": [dict(row._mapping) for row in top_artists],
        }
