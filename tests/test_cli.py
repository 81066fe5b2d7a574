"""End-to-end tests for the taxomatrix command line."""

import json

import pandas as pd
import pytest

from taxomatrix.cli import main
from taxomatrix.io.writers import write_container


@pytest.fixture
def inputs(tiny, tmp_path):
    prefix = tmp_path / "in"
    write_container(tiny, prefix)
    return [
        "--input", f"{prefix}.counts.csv",
        "--row-data", f"{prefix}.row_data.csv",
        "--col-data", f"{prefix}.col_data.csv",
    ]


def _read_ids(path):
    return list(pd.read_csv(path, index_col=0, keep_default_na=False).index)


class TestMain:

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "taxomatrix" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert "0.1.0" in capsys.readouterr().out

    def test_missing_input(self, tmp_path, capsys):
        assert main(["agglomerate", "--rank", "Genus", "--output", str(tmp_path / "x")]) == 1
        assert "--input is required" in capsys.readouterr().out

    def test_missing_input_file(self, tmp_path, capsys):
        code = main(["summarize", "--input", str(tmp_path / "nope.csv")])
        assert code == 1
        assert "Failed to load input" in capsys.readouterr().out

    def test_invalid_rank_rejected_by_parser(self, inputs, tmp_path):
        with pytest.raises(SystemExit):
            main(["agglomerate", *inputs, "--rank", "Strain", "--output", str(tmp_path / "x")])


class TestAgglomerateCommand:

    def test_rank(self, inputs, tmp_path):
        out = tmp_path / "out" / "phylum"
        assert main(["agglomerate", *inputs, "--rank", "Phylum", "--output", str(out)]) == 0
        assert _read_ids(f"{out}.counts.csv") == ["A", "B", "C"]
        params = json.loads((tmp_path / "out" / "phylum.params.json").read_text())
        assert params["rank"] == "Phylum"
        assert params["summary"]["n_features"] == 3

    def test_keep_missing(self, inputs, tmp_path):
        out = tmp_path / "phylum"
        assert main(["agglomerate", *inputs, "-r", "Phylum", "--no-drop-missing", "-o", str(out)]) == 0
        assert _read_ids(f"{out}.counts.csv") == ["A", "B", "C", "NA"]

    def test_other_pooling(self, inputs, tmp_path):
        out = tmp_path / "phylum"
        code = main(["agglomerate", *inputs, "--rank", "Phylum",
                     "--other-prevalence", "0.5", "--output", str(out)])
        assert code == 0
        assert _read_ids(f"{out}.counts.csv") == ["A", "B", "Other"]

    def test_rank_required(self, inputs, tmp_path, capsys):
        assert main(["agglomerate", *inputs, "--output", str(tmp_path / "x")]) == 1
        assert "--rank is required" in capsys.readouterr().out

    def test_rank_absent_from_taxonomy(self, inputs, tmp_path, capsys):
        assert main(["agglomerate", *inputs, "--rank", "Family", "--output", str(tmp_path / "x")]) == 1
        assert "Agglomeration failed" in capsys.readouterr().out

    def test_config_file(self, inputs, tmp_path):
        config = tmp_path / "pipeline.yaml"
        config.write_text(
            f"input: {inputs[1]}\n"
            f"row_data: {inputs[3]}\n"
            f"output: {tmp_path / 'genus'}\n"
            "agglomerate:\n"
            "  rank: Genus\n"
        )
        assert main(["agglomerate", "--config", str(config)]) == 0
        assert _read_ids(f"{tmp_path / 'genus'}.counts.csv") == ["g1", "g2", "g3"]

    def test_cli_overrides_config(self, inputs, tmp_path):
        config = tmp_path / "pipeline.yaml"
        config.write_text("agglomerate:\n  rank: Genus\n")
        out = tmp_path / "phylum"
        code = main(["agglomerate", "-c", str(config), *inputs, "--rank", "Phylum", "-o", str(out)])
        assert code == 0
        assert _read_ids(f"{out}.counts.csv") == ["A", "B", "C"]

    def test_bad_config(self, inputs, tmp_path, capsys):
        config = tmp_path / "pipeline.yaml"
        config.write_text("agglomerate:\n  rank: Strain\n")
        assert main(["agglomerate", "-c", str(config), *inputs, "-o", str(tmp_path / "x")]) == 1
        assert "Config file error" in capsys.readouterr().out


class TestTransformCommand:

    def test_clr(self, inputs, tmp_path):
        out = tmp_path / "clr"
        code = main(["transform", *inputs, "--method", "clr", "--pseudocount", "1", "--output", str(out)])
        assert code == 0
        assert (tmp_path / "clr.counts.csv").exists()
        assert (tmp_path / "clr.clr.csv").exists()
        params = json.loads((tmp_path / "clr.params.json").read_text())
        assert params["name"] == "clr"

    def test_automatic_pseudocount_from_config(self, inputs, tmp_path):
        config = tmp_path / "pipeline.yaml"
        config.write_text("transform:\n  method: clr\n  pseudocount: auto\n")
        out = tmp_path / "clr"
        assert main(["transform", "-c", str(config), *inputs, "--output", str(out)]) == 0
        params = json.loads((tmp_path / "clr.params.json").read_text())
        assert params["method"] == "clr"
        assert params["pseudocount"] is True

    def test_bad_pseudocount_in_config(self, inputs, tmp_path, capsys):
        config = tmp_path / "pipeline.yaml"
        config.write_text("transform:\n  method: clr\n  pseudocount: lots\n")
        assert main(["transform", "-c", str(config), *inputs, "--output", str(tmp_path / "x")]) == 1
        assert "Config file error" in capsys.readouterr().out

    def test_missing_pseudocount(self, inputs, tmp_path, capsys):
        assert main(["transform", *inputs, "--method", "clr", "--output", str(tmp_path / "x")]) == 1
        assert "Transform failed" in capsys.readouterr().out


class TestPrevalenceCommand:

    def test_sets(self, inputs, tmp_path):
        out = tmp_path / "core"
        assert main(["prevalence", *inputs, "--prevalence", "0.5", "--output", str(out)]) == 0
        sets = json.loads((tmp_path / "core.features.json").read_text())
        assert sets["prevalent"] == ["f1", "f2", "f4"]
        assert sets["rare"] == ["f3", "f5", "f6"]
        assert sets["prevalent_abundance"]["s3"] == pytest.approx(1.0)
        table = pd.read_csv(tmp_path / "core.prevalence.csv", index_col=0)
        assert table.loc["f4", "prevalence"] == 3

    def test_prevalence_out_of_range(self, inputs, tmp_path):
        with pytest.raises(SystemExit):
            main(["prevalence", *inputs, "--prevalence", "1.5", "--output", str(tmp_path / "x")])


class TestSummarizeCommand:

    def test_prints_json(self, inputs, capsys):
        assert main(["summarize", *inputs, "--top", "2"]) == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["n_features"] == 6
        assert summary["top_features"] == ["f2", "f1"]
        assert summary["dominant"] == {"s1": "f2", "s2": "f2", "s3": "f1"}

    def test_writes_file(self, inputs, tmp_path):
        assert main(["summarize", *inputs, "--rank", "Phylum", "-o", str(tmp_path / "s")]) == 0
        summary = json.loads((tmp_path / "s.summary.json").read_text())
        assert set(summary["dominant"].values()) == {"A"}


class TestPlotCommand:

    @pytest.mark.parametrize("kind", ["abundance", "prevalence-heatmap"])
    def test_writes_figure(self, inputs, tmp_path, kind):
        out = tmp_path / f"{kind}.png"
        assert main(["plot", *inputs, "--kind", kind, "--rank", "Phylum", "--output", str(out)]) == 0
        assert out.exists() and out.stat().st_size > 0
