import os
import time

import pytest

# POSIX rule string, so no tz database is needed on the test host
US_EASTERN = "EST5EDT,M3.2.0,M11.1.0"


def _local_zone(tz):
    saved = os.environ.get("TZ")
    os.environ["TZ"] = tz
    time.tzset()
    yield
    if saved is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = saved
    time.tzset()


@pytest.fixture(autouse=True)
def utc_local_time():
    yield from _local_zone("UTC")


@pytest.fixture
def eastern_local_time(utc_local_time):
    yield from _local_zone(US_EASTERN)
