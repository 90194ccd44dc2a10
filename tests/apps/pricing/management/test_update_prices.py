import pytest
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError

from apps.pricing.infrastructure.persistence.models import CurrentPrice, TriggerSource


@pytest.mark.django_db(transaction=True)
def test_sync_run(make_commodity):
    make_commodity(min_usd="10", max_usd="20")
    out = StringIO()

    call_command("update_prices", "--sync", stdout=out)

    assert "Updated 1 of 1 commodities" in out.getvalue()
    assert CurrentPrice.objects.count() == 1


def test_dispatches_celery_task(mocker):
    task = mocker.patch("apps.pricing.management.commands.update_prices.update_daily_prices")
    task.delay.return_value.id = "task-123"
    out = StringIO()

    call_command("update_prices", stdout=out)

    task.delay.assert_called_once_with(TriggerSource.MANUAL)
    assert "task-123" in out.getvalue()


def test_sync_run_reports_busy_lock(mocker):
    mocker.patch(
        "apps.pricing.management.commands.update_prices.update_daily_prices",
        return_value={"success": False, "message": "A daily price update is already running", "updated": 0},
    )

    with pytest.raises(CommandError, match="already running"):
        call_command("update_prices", "--sync", stdout=StringIO())
