"""
Verification pipeline view.

Completed (100%) work details split into pending and verified, each side
grouped by BASTP. Uses the same buffered refresh cycle as the dashboard.
"""

import logging

from shipyard.services import rollup_engine as engine
from shipyard.services.dashboard_service import normalise_search, refresh_view

logger = logging.getLogger(__name__)


def get_verification_pipeline(search="", vessel_id=0):
    def build(snapshot):
        pipeline = engine.build_verification_pipeline(snapshot, search=search, vessel_id=vessel_id)
        logger.debug("Verification pipeline: completed=%d pending=%d verified=%d",
                      pipeline.total_completed, pipeline.pending_count, pipeline.verified_count)
        return pipeline.to_dict()

    return refresh_view("verification", build, inputs={
        "search": normalise_search(search), "vessel_id": vessel_id or None,
    })
