r"""
Tests for micro_bench.client module.
"""

import subprocess
import sys
import time

import pytest

from micro_bench.client import LocalHost, StdioHost, format_line, host_command, open_host, parse_line
from micro_bench.client.rpc import outcome_from_dict
from micro_bench.client.stdio import format_identifier
from micro_bench.exceptions import BenchmarkNotFound, InvalidRequest, ProtocolError, TransportError
from micro_bench.protocols import HostClient
from micro_bench.server.rpc import outcome_to_dict
from micro_bench.types import RunOutcome


class TestResultLines:
    def test_format_basic(self):
        outcome = RunOutcome(name="sort", iterations=1000, elapsed_ns=1_523_000)
        line = format_line(outcome)

        assert line.split("\t")[0] == "sort"
        assert "1523.00 ns/op" in line
        assert "B/op" not in line

    def test_format_with_mem_and_bytes(self):
        outcome = RunOutcome(
            name="copy",
            iterations=100,
            elapsed_ns=100_000,
            bytes_processed=1000,
            mem_allocs=200,
            mem_bytes=2400,
            show_alloc_result=True,
        )
        line = format_line(outcome)

        assert "MB/s" in line
        assert "24 B/op" in line
        assert "2 allocs/op" in line

    def test_parse_reconstructs_totals(self):
        outcome = parse_line("copy-4\t     100\t     1000.00 ns/op\t 1000.00 MB/s\t24 B/op\t2 allocs/op")

        assert outcome.name == "copy-4"
        assert outcome.iterations == 100
        assert outcome.elapsed_ns == 100_000
        assert outcome.bytes_processed == 1000
        assert outcome.mem_bytes == 2400
        assert outcome.mem_allocs == 200
        assert outcome.show_alloc_result

    def test_parse_formatted_line(self):
        outcome = RunOutcome(name="join", iterations=512, elapsed_ns=40_960)
        parsed = parse_line(format_line(outcome))

        assert parsed.iterations == 512
        assert parsed.ns_per_op == pytest.approx(80.0)

    @pytest.mark.parametrize(
        "line",
        [
            "PASS",
            "sort 100 12.0",
            "sort many 12.0 ns/op",
            "sort 100 fast ns/op",
            "sort 100 12.0 B/op",
        ],
    )
    def test_parse_rejects(self, line):
        with pytest.raises(ProtocolError):
            parse_line(line)


class TestWireForm:
    def test_outcome_dict_round_trip(self):
        outcome = RunOutcome(name="x", iterations=3, elapsed_ns=30, failed=True, error="bad", warning="w")
        assert outcome_from_dict(outcome_to_dict(outcome)) == outcome

    def test_outcome_dict_missing_fields(self):
        with pytest.raises(ProtocolError):
            outcome_from_dict({"Name": "x"})


class TestHelpers:
    def test_format_identifier(self):
        assert format_identifier("sort") == "sort"
        assert format_identifier("sort", 4) == "sort-4"
        assert format_identifier(3) == "#3"
        assert format_identifier(3, 2) == "#3-2"

    def test_host_command_for_python_file(self):
        assert host_command("benches.py") == [sys.executable, "-m", "micro_bench", "serve", "benches.py", "--stdio"]

    def test_host_command_for_executable(self):
        assert host_command("./bench_bin") == ["bench_bin", "--benchserve"]

    def test_open_host_unreachable_rpc(self):
        with pytest.raises(TransportError):
            open_host("tcp://127.0.0.1:1")


class TestLocalHost:
    def test_is_host_client(self, host):
        assert isinstance(LocalHost(host), HostClient)

    def test_delegates(self, host):
        local = LocalHost(host)

        assert local.list("^noop$") == ["noop"]
        assert local.run("noop", 7).iterations == 7
        assert local.run_for("sum_range", 0.001).iterations >= 1
        with pytest.raises(BenchmarkNotFound):
            local.run("missing", 1)


class TestStdioHost:
    @pytest.fixture
    def stdio_host(self, sample_benchmarks):
        host = StdioHost(host_command(str(sample_benchmarks)), name="sample")
        host.start()
        yield host
        host.close()

    def test_list(self, stdio_host):
        assert stdio_host.list(".") == ["noop", "join", "failing", "noisy"]
        assert stdio_host.list("^j") == ["join"]

    def test_run(self, stdio_host):
        outcome = stdio_host.run("join", 100)

        assert outcome.name == "join"
        assert outcome.iterations == 100
        assert not outcome.failed

    def test_run_for(self, stdio_host):
        outcome = stdio_host.run_for("join", 0.01)
        assert outcome.iterations > 1

    def test_parallel_suffix(self, stdio_host):
        assert stdio_host.run("noop", 10, 2).name == "noop-2"

    def test_failure_is_an_outcome(self, stdio_host):
        outcome = stdio_host.run("failing", 1)

        assert outcome.failed
        assert outcome.error == "always fails"

    def test_errors_keep_session(self, stdio_host):
        with pytest.raises(BenchmarkNotFound):
            stdio_host.run("missing", 1)
        with pytest.raises(InvalidRequest):
            stdio_host.list("[")
        with pytest.raises(InvalidRequest):
            stdio_host.set("colour", "red")

        stdio_host.set("benchmem", True)
        assert stdio_host.run("noop", 3).show_alloc_result

    def test_stderr_is_fatal(self, stdio_host):
        with pytest.raises(TransportError, match="something went wrong"):
            stdio_host.run("noisy", 1)
            for _ in range(500):
                stdio_host.run("noop", 1)
                time.sleep(0.01)

    def test_digit_suffix_names_run_the_right_benchmark(self, tmp_path):
        path = tmp_path / "suffixed.py"
        path.write_text(
            "from micro_bench.host import BenchmarkRegistry\n"
            "\n"
            "registry = BenchmarkRegistry()\n"
            "\n"
            "@registry.register('parse')\n"
            "def bench_parse(b):\n"
            "    pass\n"
            "\n"
            "@registry.register('parse-2')\n"
            "def bench_parse_2(b):\n"
            "    b.fail('suffixed benchmark')\n"
        )
        with StdioHost(host_command(str(path)), name="suffixed") as host:
            suffixed = host.run("parse-2", 3)
            parallel = host.run("parse", 3, 2)

        assert suffixed.failed
        assert suffixed.error == "suffixed benchmark"
        assert not parallel.failed
        assert parallel.name == "parse-2"

    def test_spawned_host_ignores_rpc_address(self, sample_benchmarks, monkeypatch):
        monkeypatch.setenv("MICRO_BENCH_RPC_ADDRESS", "127.0.0.1:0")

        completed = subprocess.run(
            host_command(str(sample_benchmarks)),
            input="list\nquit\n",
            capture_output=True,
            text=True,
            timeout=30,
        )

        assert completed.stdout.splitlines()[:2] == ["PASS", '["noop", "join", "failing", "noisy"]']
        assert completed.stderr == ""

    def test_close_is_idempotent(self, stdio_host):
        stdio_host.close()
        stdio_host.close()
        assert not stdio_host.connected

    def test_unstartable_command(self):
        host = StdioHost(["/nonexistent/host-binary", "--benchserve"])
        with pytest.raises(TransportError, match="Failed to start"):
            host.start()

    def test_host_exiting_early(self):
        host = StdioHost([sys.executable, "-c", "pass"])
        with pytest.raises(TransportError):
            host.start()
        host.close()
