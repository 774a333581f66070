import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from gperf2flamegraph import flamegraph
from gperf2flamegraph.errors import RendererError, ToolNotFoundError


def completed(returncode=0, stdout=b"", stderr=b""):
    return subprocess.CompletedProcess(["flamegraph.pl"], returncode, stdout, stderr)


class FormatFoldedTests(unittest.TestCase):
    def test_lines_are_sorted_and_newline_terminated(self):
        text = flamegraph.format_folded({"main;b": 1, "main;a": 2})

        self.assertEqual("main;a 2\nmain;b 1\n", text)

    def test_empty_mapping_is_empty_text(self):
        self.assertEqual("", flamegraph.format_folded({}))


class FlamegraphDataTests(unittest.TestCase):
    def test_microsecond_hint_for_renderer(self):
        self.assertEqual(["--countname", "us"], flamegraph.FlamegraphData({}, True).default_flamegraph_args)
        self.assertEqual([], flamegraph.FlamegraphData({}, False).default_flamegraph_args)

    def test_write_text_output(self):
        data = flamegraph.FlamegraphData({"main": 2})
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "out" / "stacks.txt"
            data.write_text_output(path)

            self.assertEqual("main 2\n", path.read_text(encoding="utf-8"))
            self.assertEqual([path], list(path.parent.iterdir()))

    def test_render_svg_pipes_folded_text(self):
        data = flamegraph.FlamegraphData({"main": 2000}, to_microseconds=True)
        with mock.patch.object(flamegraph, "run_subprocess", return_value=completed(stdout=b"<svg/>")) as run:
            svg = data.render_svg(["--title", "cpu"], renderer="/opt/flamegraph.pl")

        self.assertEqual(b"<svg/>", svg)
        run.assert_called_once_with(
            ["/opt/flamegraph.pl", "--countname", "us", "--title", "cpu"],
            stdin=b"main 2000\n",
        )

    def test_render_failure_raises(self):
        data = flamegraph.FlamegraphData({"main": 1})
        with mock.patch.object(flamegraph, "run_subprocess", return_value=completed(2, stderr=b"bad input")):
            with self.assertRaises(RendererError) as ctx:
                data.render_svg(renderer="flamegraph.pl")

        self.assertIn("bad input", str(ctx.exception))

    def test_missing_renderer_raises_renderer_error(self):
        data = flamegraph.FlamegraphData({"main": 1})
        with mock.patch.object(flamegraph, "run_subprocess", side_effect=ToolNotFoundError("no such file")):
            with self.assertRaises(RendererError):
                data.render_svg(renderer="flamegraph.pl")

    def test_no_outputs_written_when_rendering_fails(self):
        data = flamegraph.FlamegraphData({"main": 1})
        with tempfile.TemporaryDirectory() as tmp_dir:
            text_path = Path(tmp_dir) / "stacks.txt"
            svg_path = Path(tmp_dir) / "stacks.svg"
            with mock.patch.object(data, "render_svg", side_effect=RendererError("boom")):
                with self.assertRaises(RendererError):
                    data.write_outputs(text_path, svg_path)

            self.assertFalse(text_path.exists())
            self.assertFalse(svg_path.exists())

    def test_text_output_removed_when_svg_write_fails(self):
        data = flamegraph.FlamegraphData({"main": 1})
        with tempfile.TemporaryDirectory() as tmp_dir:
            text_path = Path(tmp_dir) / "stacks.txt"
            svg_path = Path(tmp_dir) / "stacks.svg"
            real_write = flamegraph.write_atomic

            def fail_on_svg(path, payload):
                if Path(path) == svg_path:
                    raise OSError("disk full")
                real_write(path, payload)

            with mock.patch.object(data, "render_svg", return_value=b"<svg/>"):
                with mock.patch.object(flamegraph, "write_atomic", side_effect=fail_on_svg):
                    with self.assertRaises(OSError) as ctx:
                        data.write_outputs(text_path, svg_path)

            self.assertIn("disk full", str(ctx.exception))
            self.assertFalse(text_path.exists())
            self.assertFalse(svg_path.exists())

    def test_writes_both_outputs(self):
        data = flamegraph.FlamegraphData({"main": 1})
        with tempfile.TemporaryDirectory() as tmp_dir:
            text_path = Path(tmp_dir) / "stacks.txt"
            svg_path = Path(tmp_dir) / "stacks.svg"
            with mock.patch.object(data, "render_svg", return_value=b"<svg/>") as render:
                data.write_outputs(text_path, svg_path, ["--title", "x"])

            render.assert_called_once_with(["--title", "x"])
            self.assertEqual("main 1\n", text_path.read_text(encoding="utf-8"))
            self.assertEqual(b"<svg/>", svg_path.read_bytes())


if __name__ == "__main__":
    unittest.main()
