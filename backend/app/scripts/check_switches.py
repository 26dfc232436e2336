"""Run one trigger-evaluator pass from a cron host.

    python -m app.scripts.check_switches
"""
import json
import logging
import sys

from app.config import get_settings
from app.database import get_db_context
from app.schemas.evaluation import CheckSwitchesResponse
from app.services.email_transport import SmtpEmailTransport
from app.services.evaluator import run_evaluation

logger = logging.getLogger(__name__)


def main() -> int:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from app import models  # noqa: F401

    with get_db_context() as db:
        summary = run_evaluation(db, SmtpEmailTransport(settings), settings=settings)

    response = CheckSwitchesResponse.model_validate(summary)
    print(json.dumps(response.model_dump(by_alias=True, exclude_none=True), indent=2))
    return 0 if summary.ok else 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
