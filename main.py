#!/usr/bin/env python3
"""
Vocabulary Analytics
Prints the learning dashboard for the configured database
"""

import logging

from vocab_analytics.analytics.aggregation import AggregationEngine
from vocab_analytics.analytics.trends import TrendsProjector
from vocab_analytics.config import get_settings
from vocab_analytics.core.database.database_manager import DatabaseManager
from vocab_analytics.core.errors import InsufficientData
from vocab_analytics.utils import format_progress_stats


def main():
    """Main application entry point"""
    # Load configuration
    settings = get_settings()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    logger = logging.getLogger(__name__)
    logger.info("Loading vocabulary statistics...")

    db_manager = DatabaseManager()
    db_manager.init_database()
    state = db_manager.load_state()

    engine = AggregationEngine(settings)
    aggregated = engine.aggregate(state)
    print(format_progress_stats(aggregated.summary()))

    if not aggregated.has_data:
        print("No tests recorded yet.")
        return

    trends = TrendsProjector(settings, engine).project(state)
    if isinstance(trends, InsufficientData):
        print(trends.message)
        return

    print(f"Learning velocity: {trends.velocity.rationale}")
    print(f"Weekly trend: {trends.weekly_trend.rationale}")
    print(f"Mastery: {trends.mastery_timeline.rationale}")
    print(f"Schedule: {trends.study_schedule.sessions_per_week} sessions per week, "
          f"{trends.study_schedule.session_minutes} minutes each. "
          f"{trends.study_schedule.streak_advice}")
    for opportunity in trends.acceleration_opportunities:
        print(f"  - {opportunity.rationale}")


if __name__ == "__main__":
    main()
