"""
SQLite storage for predictions, selected squads, transfer suggestions and accuracy history
"""
import json
import logging
import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from data_pipeline.config import DATABASE_PATH, SQLITE_PRAGMAS
from evaluation.accuracy_scorer import AccuracyHistory, AccuracyRecord, Prediction, RoundScore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectedSquad:
    """Squad and lineup stored for a round"""
    round_id: int
    squad_ids: Tuple[int, ...]
    starter_ids: Tuple[int, ...]
    bench_ids: Tuple[int, ...]
    captain_id: int
    vice_captain_id: int
    formation: str
    total_cost: int
    predicted_points: float
    team_rating: int
    method: str
    actual_points: Optional[float] = None
    accuracy_percentage: Optional[float] = None


_SCHEMA = [
    '''
    CREATE TABLE IF NOT EXISTS predictions (
        player_id INTEGER NOT NULL,
        round_id INTEGER NOT NULL,
        predicted_points REAL,
        actual_points REAL,
        prediction_accuracy REAL,
        last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (player_id, round_id)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS selected_squads (
        round_id INTEGER PRIMARY KEY,
        squad_ids TEXT NOT NULL,
        starter_ids TEXT NOT NULL,
        bench_ids TEXT NOT NULL,
        captain_id INTEGER NOT NULL,
        vice_captain_id INTEGER NOT NULL,
        formation TEXT,
        total_cost INTEGER,
        predicted_points REAL,
        team_rating INTEGER,
        method TEXT,
        actual_points REAL,
        accuracy_percentage REAL,
        last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS transfer_suggestions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        round_id INTEGER NOT NULL,
        player_out_id INTEGER NOT NULL,
        player_in_id INTEGER NOT NULL,
        priority TEXT,
        points_impact REAL,
        cost_difference INTEGER,
        reason TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS accuracy_history (
        round_id INTEGER PRIMARY KEY,
        total_predicted_points REAL,
        total_actual_points REAL,
        players_analyzed INTEGER,
        correct_predictions INTEGER,
        mean_absolute_error REAL,
        accuracy_percentage REAL,
        last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS differential_alerts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        round_id INTEGER NOT NULL,
        player_id INTEGER NOT NULL,
        alert_type TEXT NOT NULL,
        confidence REAL,
        ownership_percent REAL,
        predicted_points REAL,
        reason TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS chip_analysis (
        user_id TEXT NOT NULL,
        round_id INTEGER NOT NULL,
        chip_name TEXT NOT NULL,
        expected_gain REAL,
        success_percentage INTEGER,
        recommendation TEXT,
        analysis TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (user_id, round_id, chip_name)
    )
    ''',
    'CREATE INDEX IF NOT EXISTS idx_predictions_round ON predictions(round_id)',
    'CREATE INDEX IF NOT EXISTS idx_suggestions_user_round ON transfer_suggestions(user_id, round_id)',
]


class FPLDatabase:
    """SQLite database operations; every save for a round overwrites that round"""

    def __init__(self, db_path: str = DATABASE_PATH):
        """Initialize database location"""
        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self.db_path = db_path
        self.conn: Optional[sqlite3.Connection] = None

    def __enter__(self) -> 'FPLDatabase':
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def connect(self) -> sqlite3.Connection:
        """Establish database connection and make sure the tables exist"""
        if self.conn is not None:
            return self.conn
        try:
            self.conn = sqlite3.connect(self.db_path)
            self.conn.row_factory = sqlite3.Row

            for pragma, value in SQLITE_PRAGMAS.items():
                self.conn.execute(f"PRAGMA {pragma} = {value}")

            self.create_tables()
            logger.debug("Connected to database: %s", self.db_path)
            return self.conn

        except sqlite3.Error as e:
            logger.error("Database connection error (%s): %s", self.db_path, e)
            self.close()
            raise

    def close(self):
        """Close database connection"""
        if self.conn:
            self.conn.close()
            self.conn = None

    def create_tables(self):
        with self.conn:
            for statement in _SCHEMA:
                self.conn.execute(statement)

    def _write(self, description: str, statements: Iterable[Tuple[str, tuple]]) -> int:
        """Run write statements in one transaction; returns affected rows"""
        conn = self.connect()
        affected = 0
        try:
            with conn:
                for query, params in statements:
                    affected += conn.execute(query, params).rowcount
        except sqlite3.Error as e:
            logger.error("Error writing %s: %s", description, e)
            raise
        logger.debug("Wrote %s (%d rows)", description, affected)
        return affected

    def execute_query(self, query: str, params: tuple = ()) -> pd.DataFrame:
        """Execute a SQL query and return results as DataFrame"""
        conn = self.connect()
        try:
            return pd.read_sql_query(query, conn, params=params)
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            logger.error("Query execution error: %s", e)
            raise

    def get_table_counts(self) -> Dict[str, int]:
        """Get row counts for all tables"""
        conn = self.connect()
        tables = [row[0] for row in conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
        )]
        return {table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0] for table in tables}

    # Predictions

    def save_predictions(self, predictions: Iterable[Prediction]) -> int:
        """Upsert predictions; realized fields are kept"""
        now = datetime.now().isoformat()
        statements = [(
            '''
            INSERT INTO predictions (player_id, round_id, predicted_points, last_updated)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(player_id, round_id) DO UPDATE SET
                predicted_points = excluded.predicted_points,
                last_updated = excluded.last_updated
            ''',
            (p.player_id, p.round_id, p.predicted_points, now)
        ) for p in predictions]
        self._write("predictions", statements)
        logger.info("Saved %d predictions", len(statements))
        return len(statements)

    def load_predictions(self, round_id: int) -> List[Prediction]:
        df = self.execute_query(
            "SELECT player_id, round_id, predicted_points FROM predictions WHERE round_id = ? ORDER BY player_id",
            (round_id,)
        )
        return [
            Prediction(
                player_id=int(row.player_id),
                round_id=int(row.round_id),
                predicted_points=None if pd.isna(row.predicted_points) else float(row.predicted_points)
            )
            for row in df.itertuples(index=False)
        ]

    def load_prediction_results(self, round_id: int) -> pd.DataFrame:
        """Predictions with their realized points and accuracy for a round"""
        return self.execute_query(
            "SELECT * FROM predictions WHERE round_id = ? ORDER BY player_id",
            (round_id,)
        )

    # Selected squads

    def save_selected_squad(self, round_id: int, squad, lineup, method: str = 'greedy'):
        """Store the squad and lineup picked for a round, replacing any earlier pick"""
        self._write(f"selected squad for round {round_id}", [(
            '''
            INSERT INTO selected_squads (
                round_id, squad_ids, starter_ids, bench_ids, captain_id, vice_captain_id,
                formation, total_cost, predicted_points, team_rating, method,
                actual_points, accuracy_percentage, last_updated
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, NULL, ?)
            ON CONFLICT(round_id) DO UPDATE SET
                squad_ids = excluded.squad_ids,
                starter_ids = excluded.starter_ids,
                bench_ids = excluded.bench_ids,
                captain_id = excluded.captain_id,
                vice_captain_id = excluded.vice_captain_id,
                formation = excluded.formation,
                total_cost = excluded.total_cost,
                predicted_points = excluded.predicted_points,
                team_rating = excluded.team_rating,
                method = excluded.method,
                actual_points = NULL,
                accuracy_percentage = NULL,
                last_updated = excluded.last_updated
            ''',
            (
                round_id,
                json.dumps(list(squad.player_ids)),
                json.dumps(list(lineup.starter_ids)),
                json.dumps(list(lineup.bench_ids)),
                lineup.captain_id,
                lineup.vice_captain_id,
                lineup.formation,
                squad.total_cost,
                lineup.predicted_points,
                lineup.team_rating,
                method,
                datetime.now().isoformat()
            )
        )])
        logger.info("Saved selected squad for round %s", round_id)

    def load_selected_squad(self, round_id: int) -> Optional[SelectedSquad]:
        row = self.connect().execute(
            "SELECT * FROM selected_squads WHERE round_id = ?", (round_id,)
        ).fetchone()
        if row is None:
            return None
        return SelectedSquad(
            round_id=row['round_id'],
            squad_ids=tuple(json.loads(row['squad_ids'])),
            starter_ids=tuple(json.loads(row['starter_ids'])),
            bench_ids=tuple(json.loads(row['bench_ids'])),
            captain_id=row['captain_id'],
            vice_captain_id=row['vice_captain_id'],
            formation=row['formation'],
            total_cost=row['total_cost'],
            predicted_points=row['predicted_points'],
            team_rating=row['team_rating'],
            method=row['method'],
            actual_points=row['actual_points'],
            accuracy_percentage=row['accuracy_percentage']
        )

    # Transfer suggestions

    def save_transfer_suggestions(self, user_id: str, round_id: int, report) -> int:
        """Replace a user's stored suggestions for a round"""
        now = datetime.now().isoformat()
        statements = [(
            "DELETE FROM transfer_suggestions WHERE user_id = ? AND round_id = ?",
            (user_id, round_id)
        )]
        for s in report.suggestions:
            statements.append((
                '''
                INSERT INTO transfer_suggestions (
                    user_id, round_id, player_out_id, player_in_id, priority,
                    points_impact, cost_difference, reason, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ''',
                (user_id, round_id, s.player_out.player_id, s.player_in.player_id,
                 s.priority.value, s.points_impact, s.cost_difference, s.reason, now)
            ))
        self._write(f"transfer suggestions for {user_id} round {round_id}", statements)
        logger.info("Saved %d transfer suggestions for user %s, round %s",
                    len(report.suggestions), user_id, round_id)
        return len(report.suggestions)

    def load_transfer_suggestions(self, user_id: str, round_id: int) -> pd.DataFrame:
        return self.execute_query(
            '''
            SELECT player_out_id, player_in_id, priority, points_impact, cost_difference, reason
            FROM transfer_suggestions
            WHERE user_id = ? AND round_id = ?
            ORDER BY points_impact DESC, id
            ''',
            (user_id, round_id)
        )

    # Differentials and chips

    def save_differential_alerts(self, round_id: int, alerts) -> int:
        """Replace the stored differential alerts for a round"""
        now = datetime.now().isoformat()
        statements = [("DELETE FROM differential_alerts WHERE round_id = ?", (round_id,))]
        for alert in alerts:
            statements.append((
                '''
                INSERT INTO differential_alerts (
                    round_id, player_id, alert_type, confidence, ownership_percent,
                    predicted_points, reason, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ''',
                (round_id, alert.player_id, alert.alert_type.value, alert.confidence,
                 alert.ownership_percent, alert.predicted_points, alert.reason, now)
            ))
        self._write(f"differential alerts for round {round_id}", statements)
        logger.info("Saved %d differential alerts for round %s", len(statements) - 1, round_id)
        return len(statements) - 1

    def load_differential_alerts(self, round_id: int) -> pd.DataFrame:
        return self.execute_query(
            '''
            SELECT player_id, alert_type, confidence, ownership_percent, predicted_points, reason
            FROM differential_alerts
            WHERE round_id = ?
            ORDER BY confidence DESC, id
            ''',
            (round_id,)
        )

    def save_chip_analysis(self, user_id: str, round_id: int, report) -> int:
        """Replace a user's stored chip analysis for a round"""
        now = datetime.now().isoformat()
        statements = [(
            "DELETE FROM chip_analysis WHERE user_id = ? AND round_id = ?",
            (user_id, round_id)
        )]
        for chip in report.evaluations:
            statements.append((
                '''
                INSERT INTO chip_analysis (
                    user_id, round_id, chip_name, expected_gain, success_percentage,
                    recommendation, analysis, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ''',
                (user_id, round_id, chip.chip_name, chip.expected_gain, chip.success_percentage,
                 chip.recommendation, chip.reason, now)
            ))
        self._write(f"chip analysis for {user_id} round {round_id}", statements)
        return len(report.evaluations)

    def load_chip_analysis(self, user_id: str, round_id: int) -> pd.DataFrame:
        return self.execute_query(
            '''
            SELECT chip_name, expected_gain, success_percentage, recommendation, analysis
            FROM chip_analysis
            WHERE user_id = ? AND round_id = ?
            ORDER BY expected_gain DESC, chip_name
            ''',
            (user_id, round_id)
        )

    # Accuracy

    def save_round_score(self, score: RoundScore):
        """
        Store a scored round

        Upserts the round's accuracy record, the realized fields of every
        scored prediction and, when present, the realized score of the
        selected squad. Saving the same score again leaves the tables unchanged.
        """
        record = score.record
        now = datetime.now().isoformat()
        statements = [(
            '''
            INSERT INTO accuracy_history (
                round_id, total_predicted_points, total_actual_points, players_analyzed,
                correct_predictions, mean_absolute_error, accuracy_percentage, last_updated
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(round_id) DO UPDATE SET
                total_predicted_points = excluded.total_predicted_points,
                total_actual_points = excluded.total_actual_points,
                players_analyzed = excluded.players_analyzed,
                correct_predictions = excluded.correct_predictions,
                mean_absolute_error = excluded.mean_absolute_error,
                accuracy_percentage = excluded.accuracy_percentage,
                last_updated = excluded.last_updated
            ''',
            (record.round_id, record.total_predicted_points, record.total_actual_points,
             record.players_analyzed, record.correct_predictions, record.mean_absolute_error,
             record.accuracy_percentage, now)
        )]
        for outcome in score.outcomes:
            statements.append((
                '''
                UPDATE predictions SET actual_points = ?, prediction_accuracy = ?, last_updated = ?
                WHERE player_id = ? AND round_id = ?
                ''',
                (outcome.actual, outcome.accuracy, now, outcome.player_id, record.round_id)
            ))
        if score.lineup_score is not None:
            statements.append((
                '''
                UPDATE selected_squads SET actual_points = ?, accuracy_percentage = ?, last_updated = ?
                WHERE round_id = ?
                ''',
                (score.lineup_score.actual_points, score.lineup_score.accuracy_percentage,
                 now, record.round_id)
            ))
        self._write(f"accuracy for round {record.round_id}", statements)
        logger.info("Saved accuracy for round %s: %.1f%%", record.round_id, record.accuracy_percentage)

    def load_accuracy_history(self) -> AccuracyHistory:
        df = self.execute_query("SELECT * FROM accuracy_history ORDER BY round_id")
        return AccuracyHistory(
            AccuracyRecord(
                round_id=int(row.round_id),
                total_predicted_points=float(row.total_predicted_points),
                total_actual_points=float(row.total_actual_points),
                players_analyzed=int(row.players_analyzed),
                correct_predictions=int(row.correct_predictions),
                mean_absolute_error=float(row.mean_absolute_error),
                accuracy_percentage=float(row.accuracy_percentage)
            )
            for row in df.itertuples(index=False)
        )
