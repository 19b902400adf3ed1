from __future__ import annotations

import contextlib
import io
import sys
import tempfile
import unittest
from pathlib import Path

import pandas as pd

_THIS_DIR = Path(__file__).resolve().parent
if str(_THIS_DIR) not in sys.path:
    sys.path.insert(0, str(_THIS_DIR))

from inspect_input import main as inspect_main  # noqa: E402


def _run(argv: list[str]) -> tuple[int, str, str]:
    out = io.StringIO()
    err = io.StringIO()
    with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
        rc = inspect_main(argv)
    return rc, out.getvalue(), err.getvalue()


class TestInspectInput(unittest.TestCase):
    def test_summaries(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            vwc = Path(td) / "HYS_VWC.csv"
            vwc.write_text(
                "TIMESTAMP,Treatment,VWC45,VWC90\n"
                "05/01/2017,CHR,0.12,NA\n"
                "05/02/2017,CON,0.2,0.3\n"
                "06/30/2017,CON,NA,0.31\n",
                encoding="utf-8",
            )
            ppt = Path(td) / "ppt.xlsx"
            with pd.ExcelWriter(ppt, engine="openpyxl") as xw:
                pd.DataFrame({"date": ["05/01/2017", "05/04/2017"], "ambient precip (mm)": [2.5, 10.0]}).to_excel(
                    xw, sheet_name="HYS Daily PPT 2017", index=False
                )

            rc, out, err = _run(["--moisture", str(vwc), "--precip", str(ppt), "--sheet", "HYS Daily PPT 2017"])
            self.assertEqual(rc, 0, err)
            self.assertIn("HYS_VWC.csv: rows=3, dates=2017-05-01 .. 2017-06-30", out)
            self.assertIn("CON: 2 rows", out)
            self.assertIn("CHR: 1 rows", out)
            self.assertIn("VWC90: missing=1", out)
            self.assertIn("sheets=['HYS Daily PPT 2017']", out)
            self.assertIn("rows=2, dates=2017-05-01 .. 2017-05-04, total=12.5 mm", out)

    def test_argument_errors(self) -> None:
        rc, _, err = _run([])
        self.assertEqual(rc, 2)
        self.assertIn("nothing to inspect", err)

        rc, _, err = _run(["--sheet", "CHY Daily PPT 2017"])
        self.assertEqual(rc, 2)

    def test_missing_inputs(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            rc, _, err = _run(["--moisture", str(Path(td) / "nope.csv")])
            self.assertEqual(rc, 2)
            self.assertIn("ERROR:", err)


if __name__ == "__main__":
    unittest.main()
