"""
Pytest configuration and shared fixtures for exiftags tests.
"""
import shlex
import sys
from pathlib import Path
from typing import Callable

import pytest

# Shape of `exiftool -listx` output, trimmed to two tables.
SAMPLE_LISTING = b"""<?xml version='1.0' encoding='UTF-8'?>
<taginfo>

<table name='EXIF::Main' g0='EXIF' g1='IFD0' g2='Image'>
 <desc lang='en'>Exif</desc>
 <tag id='271' name='Make' type='string' writable='true' g2='Camera'>
  <desc lang='en'>Make</desc>
  <desc lang='de'>Hersteller</desc>
 </tag>
 <tag id='272' name='Model' type='string' writable='true' g2='Camera'>
  <desc lang='en'>Camera Model Name</desc>
 </tag>
</table>

<table name='File::Main' g0='File' g1='File' g2='Image'>
 <tag id='FileSize' name='FileSize' type='?' writable='false'>
  <desc lang='en'>File Size</desc>
  <desc lang='fr'>Taille du fichier</desc>
 </tag>
</table>

</taginfo>
"""

FAKE_EXIFTOOL_SCRIPT = """\
import sys
import time

with open({payload!r}, "rb") as handle:
    sys.stdout.buffer.write(handle.read())
sys.stdout.buffer.flush()
time.sleep({linger!r})
sys.exit({exit_code!r})
"""

FakeExiftool = Callable[..., str]


@pytest.fixture(scope="session")
def sample_listing() -> bytes:
    """Returns a small exiftool-style tag dictionary."""
    return SAMPLE_LISTING


@pytest.fixture
def fake_exiftool(tmp_path: Path) -> FakeExiftool:
    """
    Returns a factory building a command string that impersonates exiftool.

    The command prints ``payload`` to stdout, optionally stays alive for
    ``linger`` seconds, then exits with ``exit_code``.
    """
    counter = {"n": 0}

    def _build(payload: bytes, *, exit_code: int = 0, linger: float = 0.0) -> str:
        counter["n"] += 1
        payload_path = tmp_path / f"listing-{counter['n']}.xml"
        payload_path.write_bytes(payload)
        script_path = tmp_path / f"fake_exiftool_{counter['n']}.py"
        script_path.write_text(
            FAKE_EXIFTOOL_SCRIPT.format(
                payload=str(payload_path), linger=linger, exit_code=exit_code
            ),
            encoding="utf-8",
        )
        return shlex.join([sys.executable, str(script_path)])

    return _build
