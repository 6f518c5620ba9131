"""Survey weights calibration: raking targets, iterative proportional fitting, trimming and design effects."""

import logging
from pathlib import Path

log = logging.getLogger(__name__)


survey_weighting_location = Path(__file__).parent.parent
