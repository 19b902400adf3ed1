from __future__ import annotations

import contextlib
import io
import sys
import tempfile
import unittest
from pathlib import Path

import pandas as pd

_THIS_DIR = Path(__file__).resolve().parent
_DRIVER_DIR = _THIS_DIR.parents[1] / "post_analysis"
for _p in (_THIS_DIR, _DRIVER_DIR):
    if str(_p) not in sys.path:
        sys.path.insert(0, str(_p))

from plot_site_figures import main as batch_main  # noqa: E402


def _write_site_inputs(data_dir: Path, sheets: tuple[str, ...]) -> Path:
    body = "\n".join(
        [
            "TIMESTAMP,Treatment,VWC45,VWC90",
            "05/01/2017,CHR,0.12,0.20",
            "05/01/2017,INT,0.18,0.22",
            "05/01/2017,CON,0.25,0.30",
            "06/15/2017,CHR,0.10,0.18",
            "06/15/2017,CON,0.22,0.28",
        ]
    )
    for name in ("CHY_VWC.csv", "HYS_VWC.csv"):
        (data_dir / name).write_text(body + "\n", encoding="utf-8")

    ppt = data_dir / "ppt.xlsx"
    with pd.ExcelWriter(ppt, engine="openpyxl") as xw:
        for sheet in sheets:
            pd.DataFrame(
                {"date": ["05/01/2017", "06/15/2017"], "ambient precip (mm)": [4.0, 12.5]}
            ).to_excel(xw, sheet_name=sheet, index=False)
    return ppt


def _run(argv: list[str]) -> tuple[int, str, str]:
    out = io.StringIO()
    err = io.StringIO()
    with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
        rc = batch_main(argv)
    return rc, out.getvalue(), err.getvalue()


class TestPlotSiteFigures(unittest.TestCase):
    def test_renders_every_site_and_depth(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            data_dir = Path(td)
            ppt = _write_site_inputs(data_dir, ("CHY Daily PPT 2017", "HYS Daily PPT 2017"))
            outdir = data_dir / "figs"

            rc, out, err = _run(
                ["--data-dir", str(data_dir), "--precip", str(ppt), "--outdir", str(outdir), "--dpi", "40"]
            )
            self.assertEqual(rc, 0, err)
            self.assertEqual(
                sorted(p.name for p in outdir.iterdir()),
                [
                    "vwc_ppt_chy_deep.png",
                    "vwc_ppt_chy_shallow.png",
                    "vwc_ppt_hys_deep.png",
                    "vwc_ppt_hys_shallow.png",
                ],
            )
            self.assertIn(f"OK: wrote figures under {outdir}", out)

    def test_missing_sheet_is_reported(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            data_dir = Path(td)
            ppt = _write_site_inputs(data_dir, ("CHY Daily PPT 2017",))
            outdir = data_dir / "figs"

            rc, out, err = _run(
                ["--data-dir", str(data_dir), "--precip", str(ppt), "--outdir", str(outdir), "--dpi", "40"]
            )
            self.assertEqual(rc, 2)
            self.assertIn("FAIL:", err)
            self.assertIn("HYS (shallow)", err)
            self.assertIn("HYS Daily PPT 2017", err)
            self.assertIn("OK: CHY (deep)", out)
            self.assertEqual(
                sorted(p.name for p in outdir.iterdir()),
                ["vwc_ppt_chy_deep.png", "vwc_ppt_chy_shallow.png"],
            )


if __name__ == "__main__":
    unittest.main()
