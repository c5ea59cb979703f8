"""
Tests for the gen_moduli entry point: exit codes, dry runs and a full
run against a stand-in ssh-keygen shell script.
"""
import stat
import textwrap

import pytest

import gen_moduli

FAKE_SSH_KEYGEN = textwrap.dedent("""\
    #!/bin/sh
    mode=""
    out=""
    bits=""
    while [ $# -gt 0 ]; do
        case "$1" in
            -G) mode=generate; out="$2"; shift ;;
            -T) mode=screen; out="$2"; shift ;;
            -b) bits="$2"; shift ;;
            -a|-f) shift ;;
        esac
        shift
    done
    if [ "$mode" = generate ]; then
        [ "$bits" = "$INTERRUPT_AT" ] && kill -INT "$PPID"
        echo "candidates $bits" > "$out"
    else
        name=$(basename "$out" .moduli)
        [ "$name" = "$FAIL_SIZE" ] && { echo "screening failed" >&2; exit 1; }
        echo "moduli $name" > "$out"
    fi
""")


@pytest.fixture
def workspace(tmp_path):
    keygen = tmp_path / "ssh-keygen"
    keygen.write_text(FAKE_SSH_KEYGEN)
    keygen.chmod(keygen.stat().st_mode | stat.S_IEXEC)

    entropy = tmp_path / "entropy_avail"
    entropy.write_text("3500\n")

    config = tmp_path / "moduli.yaml"
    config.write_text(textwrap.dedent(f"""\
        generation:
          min_bits: 3072
          max_bits: 5120
          bit_delta: 1024
        scheduler:
          poll_interval: 0.05
          workers: 2
        preflight:
          entropy_path: {entropy}
        execution:
          work_dir: {tmp_path / "work"}
          job_log_dir: {tmp_path / "job_logs"}
        logging:
          file: {tmp_path / "logs" / "moduli_gen.log"}
        programs:
          ssh_keygen:
            path: {keygen}
    """))
    return tmp_path


def test_full_run(workspace, capsys):
    assert gen_moduli.main(['--config', str(workspace / "moduli.yaml")]) == 0

    outputs = list((workspace / "work").glob("moduli.*"))
    assert len(outputs) == 1
    assert outputs[0].read_text() == "moduli bit_3072\nmoduli bit_4096\nmoduli bit_5120\n"
    assert not list((workspace / "work").glob("bit_*"))

    out = capsys.readouterr().out
    assert "Generating candidate primes of bitsize 3072" in out
    assert "Testing candidate primes of bitsize 5120 for primality" in out
    assert f"New moduli data saved to file {outputs[0].resolve()}" in out


def test_failed_size_still_exits_zero(workspace, monkeypatch, capsys):
    monkeypatch.setenv("FAIL_SIZE", "bit_4096")
    assert gen_moduli.main(['--config', str(workspace / "moduli.yaml")]) == 0

    outputs = list((workspace / "work").glob("moduli.*"))
    assert outputs[0].read_text() == "moduli bit_3072\nmoduli bit_5120\n"
    assert "4096" in capsys.readouterr().out
    assert list((workspace / "job_logs").glob("validate_4096_*.log"))


def test_low_entropy_exits_one(workspace, capsys):
    (workspace / "entropy_avail").write_text("150\n")

    assert gen_moduli.main(['--config', str(workspace / "moduli.yaml")]) == 1

    err = capsys.readouterr().err
    assert "(150 bits out of a potential 4096 bits)" in err
    assert "Entropy should be at least 2000 bits." in err
    assert not (workspace / "work").exists()


def test_dry_run_prints_commands(workspace, capsys):
    assert gen_moduli.main(['--config', str(workspace / "moduli.yaml"), '--dry-run',
                            '--max-bits', '4096', '--syntax', 'modern']) == 0

    out = capsys.readouterr().out
    assert "-M generate -O bits=3072" in out
    assert "-M screen -O prime-tests=100" in out
    assert "bits=5120" not in out
    assert not (workspace / "work").exists()


def test_bad_config_exits_three(tmp_path, capsys):
    assert gen_moduli.main(['--config', str(tmp_path / "missing.yaml")]) == 3
    assert "Configuration file not found" in capsys.readouterr().err


def test_invalid_override_exits_three(workspace):
    assert gen_moduli.main(['--config', str(workspace / "moduli.yaml"),
                            '--max-bits', '16384']) == 3


def write_local_config(workspace, text):
    (workspace / "moduli.local.yaml").write_text(textwrap.dedent(text))


def test_unusable_work_dir_exits_two(workspace, capsys):
    blocker = workspace / "blocker"
    blocker.write_text("not a directory\n")

    assert gen_moduli.main(['--config', str(workspace / "moduli.yaml"),
                            '--work-dir', str(blocker / "sub")]) == 2
    assert "Cannot create work directory" in capsys.readouterr().err


def test_uncreatable_output_file_exits_two(workspace, capsys):
    write_local_config(workspace, """\
        execution:
          output_prefix: missing_dir/moduli
    """)

    assert gen_moduli.main(['--config', str(workspace / "moduli.yaml")]) == 2
    assert "Cannot create output file" in capsys.readouterr().err


def test_unusable_log_file_exits_three(workspace, capsys):
    blocker = workspace / "blocker"
    blocker.write_text("not a directory\n")
    write_local_config(workspace, f"""\
        logging:
          file: {blocker / "logs" / "moduli_gen.log"}
    """)

    assert gen_moduli.main(['--config', str(workspace / "moduli.yaml")]) == 3
    assert "Cannot open log file" in capsys.readouterr().err
    assert not (workspace / "work").exists()


def test_interrupt_exits_130_without_merging(workspace, monkeypatch, capsys):
    monkeypatch.setenv("INTERRUPT_AT", "3072")

    assert gen_moduli.main(['--config', str(workspace / "moduli.yaml")]) == 130

    assert not list((workspace / "work").glob("moduli.*"))
    assert "Shutdown requested" in capsys.readouterr().err
