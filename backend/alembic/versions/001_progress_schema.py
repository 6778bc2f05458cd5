"""Progress Engine Schema

Creates the tables read by the progress engine and the streak table it writes:
- users, materias, enrollments
- notebooks, concepts, learning_states
- study_sessions, quiz_results, mini_quiz_results, quiz_stats
- game_sessions, game_points
- study_streaks

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str, **kwargs) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        **kwargs,
    )


def upgrade() -> None:
    # ===========================================
    # People & Subjects
    # ===========================================

    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("display_name", sa.String(200), nullable=True),
        sa.Column("nombre", sa.String(200), nullable=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("timezone", sa.String(64), nullable=True),
        _timestamp("created_at", nullable=True),
    )

    op.create_table(
        "materias",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("teacher_id", sa.String(128), nullable=True),
        _timestamp("created_at", nullable=True),
    )
    op.create_index("ix_materias_teacher_id", "materias", ["teacher_id"])

    op.create_table(
        "enrollments",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("student_id", sa.String(128), nullable=False),
        sa.Column("teacher_id", sa.String(128), nullable=False),
        sa.Column(
            "materia_id", sa.String(128), sa.ForeignKey("materias.id"), nullable=False
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        _timestamp("enrolled_at", nullable=True),
    )
    op.create_index("ix_enrollments_student_id", "enrollments", ["student_id"])
    op.create_index("ix_enrollments_teacher_id", "enrollments", ["teacher_id"])
    op.create_index("ix_enrollments_materia_id", "enrollments", ["materia_id"])

    # ===========================================
    # Notebooks & Concepts
    # ===========================================

    op.create_table(
        "notebooks",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("owner_id", sa.String(128), nullable=True),
        sa.Column(
            "materia_id", sa.String(128), sa.ForeignKey("materias.id"), nullable=True
        ),
        _timestamp("created_at", nullable=True),
    )
    op.create_index("ix_notebooks_owner_id", "notebooks", ["owner_id"])
    op.create_index("ix_notebooks_materia_id", "notebooks", ["materia_id"])

    op.create_table(
        "concepts",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column(
            "notebook_id", sa.String(128), sa.ForeignKey("notebooks.id"), nullable=False
        ),
        sa.Column("term", sa.Text(), nullable=False),
        sa.Column("definition", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at", nullable=True),
    )
    op.create_index("ix_concepts_notebook_id", "concepts", ["notebook_id"])

    op.create_table(
        "learning_states",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("concept_id", sa.String(128), nullable=False),
        sa.Column("notebook_id", sa.String(128), nullable=True),
        sa.Column("repetitions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("interval", sa.Float(), nullable=False, server_default="1.0"),
        sa.Column("ease_factor", sa.Float(), nullable=False, server_default="2.5"),
        sa.Column("last_module", sa.String(50), nullable=True),
        sa.Column("next_review", sa.DateTime(timezone=True), nullable=True),
        _timestamp("updated_at", nullable=True),
        sa.UniqueConstraint("user_id", "concept_id", name="uq_learning_state_user_concept"),
    )
    op.create_index("ix_learning_states_user_id", "learning_states", ["user_id"])
    op.create_index("ix_learning_states_concept_id", "learning_states", ["concept_id"])

    # ===========================================
    # Scored Activity
    # ===========================================

    op.create_table(
        "study_sessions",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("notebook_id", sa.String(128), nullable=False),
        sa.Column("mode", sa.String(30), nullable=False),
        _timestamp("start_time", nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_seconds", sa.Float(), nullable=False, server_default="0"),
        sa.Column("intensity", sa.String(20), nullable=True),
        sa.Column("session_score", sa.Float(), nullable=True),
        sa.Column("final_session_score", sa.Float(), nullable=True),
        sa.Column("validated", sa.Boolean(), nullable=False, server_default="false"),
    )
    op.create_index("ix_study_sessions_user_id", "study_sessions", ["user_id"])
    op.create_index("ix_study_sessions_notebook_id", "study_sessions", ["notebook_id"])
    op.create_index("ix_study_sessions_mode", "study_sessions", ["mode"])
    op.create_index("ix_study_sessions_start_time", "study_sessions", ["start_time"])

    for table in ("quiz_results", "mini_quiz_results"):
        columns = [
            sa.Column("id", sa.String(128), primary_key=True),
            sa.Column("user_id", sa.String(128), nullable=False),
            sa.Column("notebook_id", sa.String(128), nullable=True),
            sa.Column("score", sa.Float(), nullable=False, server_default="0"),
        ]
        if table == "mini_quiz_results":
            columns.append(
                sa.Column("passed", sa.Boolean(), nullable=False, server_default="false")
            )
        columns.append(_timestamp("timestamp", nullable=False))
        op.create_table(table, *columns)
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])
        op.create_index(f"ix_{table}_timestamp", table, ["timestamp"])

    op.create_table(
        "quiz_stats",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("notebook_id", sa.String(128), nullable=False),
        sa.Column("max_score", sa.Integer(), nullable=True),
        sa.Column("total_score", sa.Integer(), nullable=True),
        _timestamp("updated_at", nullable=True),
        sa.UniqueConstraint("user_id", "notebook_id", name="uq_quiz_stats_user_notebook"),
    )

    op.create_table(
        "game_sessions",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("notebook_id", sa.String(128), nullable=True),
        sa.Column("game_type", sa.String(50), nullable=True),
        sa.Column("duration_seconds", sa.Float(), nullable=False, server_default="0"),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default="false"),
        _timestamp("timestamp", nullable=True),
    )
    op.create_index("ix_game_sessions_user_id", "game_sessions", ["user_id"])
    op.create_index("ix_game_sessions_timestamp", "game_sessions", ["timestamp"])

    op.create_table(
        "game_points",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("notebook_id", sa.String(128), nullable=False),
        sa.Column("total_points", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("updated_at", nullable=True),
        sa.UniqueConstraint("user_id", "notebook_id", name="uq_game_points_user_notebook"),
    )

    # ===========================================
    # Streaks
    # ===========================================

    op.create_table(
        "study_streaks",
        sa.Column("user_id", sa.String(128), primary_key=True),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_study_date", sa.Date(), nullable=True),
        sa.Column("study_history", sa.JSON(), nullable=False, server_default="[]"),
        _timestamp("updated_at", nullable=True),
    )


def downgrade() -> None:
    op.drop_table("study_streaks")
    op.drop_table("game_points")
    op.drop_index("ix_game_sessions_timestamp", table_name="game_sessions")
    op.drop_index("ix_game_sessions_user_id", table_name="game_sessions")
    op.drop_table("game_sessions")
    op.drop_table("quiz_stats")
    for table in ("mini_quiz_results", "quiz_results"):
        op.drop_index(f"ix_{table}_timestamp", table_name=table)
        op.drop_index(f"ix_{table}_user_id", table_name=table)
        op.drop_table(table)
    op.drop_index("ix_study_sessions_start_time", table_name="study_sessions")
    op.drop_index("ix_study_sessions_mode", table_name="study_sessions")
    op.drop_index("ix_study_sessions_notebook_id", table_name="study_sessions")
    op.drop_index("ix_study_sessions_user_id", table_name="study_sessions")
    op.drop_table("study_sessions")
    op.drop_index("ix_learning_states_concept_id", table_name="learning_states")
    op.drop_index("ix_learning_states_user_id", table_name="learning_states")
    op.drop_table("learning_states")
    op.drop_index("ix_concepts_notebook_id", table_name="concepts")
    op.drop_table("concepts")
    op.drop_index("ix_notebooks_materia_id", table_name="notebooks")
    op.drop_index("ix_notebooks_owner_id", table_name="notebooks")
    op.drop_table("notebooks")
    op.drop_index("ix_enrollments_materia_id", table_name="enrollments")
    op.drop_index("ix_enrollments_teacher_id", table_name="enrollments")
    op.drop_index("ix_enrollments_student_id", table_name="enrollments")
    op.drop_table("enrollments")
    op.drop_index("ix_materias_teacher_id", table_name="materias")
    op.drop_table("materias")
    op.drop_table("users")
