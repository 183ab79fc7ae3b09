from __future__ import annotations

from packaging.version import Version

import ev_regen


def test_version_is_semantic() -> None:
    version = Version(ev_regen.__version__)

    assert ev_regen.__version__ == "0.1.0"
    assert len(version.release) == 3
