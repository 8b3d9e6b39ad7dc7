"""
Read-side aggregation for the public leaderboard.

Every model appears on the board, including ones that have never traded.
Brier score and win rate stay ``None`` until at least one bet has settled so
"no data" is never shown as a perfect or zero score.
"""

from sqlalchemy import case, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.database import Agent, BrierScore, Cohort, Decision, ModelRecord, Position
from models.leaderboard import CohortSummary, LeaderboardEntry, RecentDecision


def _num(value) -> float:
    return float(value) if value is not None else 0.0


async def get_aggregate_leaderboard(session: AsyncSession) -> list[LeaderboardEntry]:
    models = (
        (await session.execute(select(ModelRecord).order_by(ModelRecord.display_name, ModelRecord.id)))
        .scalars()
        .all()
    )

    pnl_rows = await session.execute(
        select(
            Agent.model_id,
            func.sum(Position.realized_pnl + Position.unrealized_pnl),
        )
        .select_from(Position)
        .join(Agent, Agent.id == Position.agent_id)
        .group_by(Agent.model_id)
    )
    pnl_by_model = {model_id: _num(total) for model_id, total in pnl_rows.all()}

    capital_rows = await session.execute(
        select(
            Agent.model_id,
            func.count(distinct(Agent.cohort_id)),
            func.sum(Cohort.initial_balance),
        )
        .select_from(Agent)
        .join(Cohort, Cohort.id == Agent.cohort_id)
        .group_by(Agent.model_id)
    )
    cohorts_by_model: dict[str, tuple[int, float]] = {
        model_id: (int(count or 0), _num(capital)) for model_id, count, capital in capital_rows.all()
    }

    brier_rows = await session.execute(
        select(Agent.model_id, func.avg(BrierScore.brier_score))
        .select_from(BrierScore)
        .join(Agent, Agent.id == BrierScore.agent_id)
        .group_by(Agent.model_id)
    )
    brier_by_model = {
        model_id: float(avg) for model_id, avg in brier_rows.all() if avg is not None
    }

    settled_rows = await session.execute(
        select(
            Agent.model_id,
            func.count(Position.id),
            func.sum(case((Position.realized_pnl > 0, 1), else_=0)),
        )
        .select_from(Position)
        .join(Agent, Agent.id == Position.agent_id)
        .where(Position.status == "settled")
        .group_by(Agent.model_id)
    )
    settled_by_model = {
        model_id: (int(settled or 0), int(wins or 0)) for model_id, settled, wins in settled_rows.all()
    }

    entries: list[LeaderboardEntry] = []
    for model in models:
        total_pnl = pnl_by_model.get(model.id, 0.0)
        num_cohorts, capital = cohorts_by_model.get(model.id, (0, 0.0))
        settled, wins = settled_by_model.get(model.id, (0, 0))

        entries.append(
            LeaderboardEntry(
                model_id=model.id,
                display_name=model.display_name,
                provider=model.provider,
                color=model.color,
                total_pnl=total_pnl,
                total_pnl_percent=(total_pnl / capital * 100) if capital > 0 else 0.0,
                avg_brier_score=brier_by_model.get(model.id),
                num_cohorts=num_cohorts,
                num_resolved_bets=settled,
                win_rate=(wins / settled) if settled > 0 else None,
            )
        )

    # sorted() is stable, so ties keep the display-name order above
    return sorted(entries, key=lambda entry: entry.total_pnl, reverse=True)


async def get_cohort_summaries(session: AsyncSession) -> list[CohortSummary]:
    cohorts = (
        (await session.execute(select(Cohort).order_by(Cohort.cohort_number.desc()))).scalars().all()
    )

    agent_rows = await session.execute(
        select(Agent.cohort_id, func.count(Agent.id)).group_by(Agent.cohort_id)
    )
    agents_by_cohort = {cohort_id: int(count) for cohort_id, count in agent_rows.all()}

    market_rows = await session.execute(
        select(Agent.cohort_id, func.count(distinct(Position.market_id)))
        .select_from(Position)
        .join(Agent, Agent.id == Position.agent_id)
        .group_by(Agent.cohort_id)
    )
    markets_by_cohort = {cohort_id: int(count) for cohort_id, count in market_rows.all()}

    return [
        CohortSummary(
            id=cohort.id,
            cohort_number=cohort.cohort_number,
            started_at=cohort.started_at,
            completed_at=cohort.completed_at,
            status=cohort.status,
            methodology_version=cohort.methodology_version,
            num_agents=agents_by_cohort.get(cohort.id, 0),
            total_markets_traded=markets_by_cohort.get(cohort.id, 0),
        )
        for cohort in cohorts
    ]


async def get_recent_decisions(session: AsyncSession, limit: int = 10) -> list[RecentDecision]:
    """Latest decisions across all cohorts, skipping failed model calls"""
    rows = await session.execute(
        select(Decision, ModelRecord, Cohort.cohort_number)
        .select_from(Decision)
        .join(Agent, Agent.id == Decision.agent_id)
        .join(ModelRecord, ModelRecord.id == Agent.model_id)
        .join(Cohort, Cohort.id == Decision.cohort_id)
        .where(Decision.action != "ERROR")
        .order_by(Decision.decision_timestamp.desc())
        .limit(limit)
    )

    decisions: list[RecentDecision] = []
    for decision, model, cohort_number in rows.all():
        decisions.append(
            RecentDecision(
                id=decision.id,
                agent_id=decision.agent_id,
                decision_week=decision.decision_week,
                decision_timestamp=decision.decision_timestamp,
                action=decision.action,
                reasoning=decision.reasoning,
                model_id=model.id,
                model_display_name=model.display_name,
                model_color=model.color,
                cohort_number=cohort_number,
            )
        )
    return decisions

