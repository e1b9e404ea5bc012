"""Constants for labelflow.

This module centralizes magic numbers and default values used by the workflow.
"""

import os


# Actor id used by scheduled jobs and automatic transitions
SYSTEM_ACTOR_ID = os.getenv("LABELFLOW_SYSTEM_ACTOR_ID", "system")

# Upper bound on recheck passes per call (guards against misconfigured cascades)
MAX_CASCADE_PASSES = int(os.getenv("LABELFLOW_MAX_CASCADE_PASSES", "10"))

# Corrective plan
CORRECTIVE_PLAN_SCORE_THRESHOLD = 65.0  # scores strictly below require a plan
CORRECTIVE_PLAN_DEADLINE_DAYS = 30

# Documentary review must be ready this many days before the audit starts
DOCUMENTARY_REVIEW_LEAD_DAYS = 7
MIN_TASK_DURATION_DAYS = 1

# Label lifecycle
LABEL_VALIDITY_DAYS = 365
LABEL_EXPIRATION_WARNING_DAYS = 40

# Storage key prefix for generated attestations
ATTESTATION_STORAGE_PREFIX = "attestations"
