"""
Shared fixtures.

The RVC toolkit is replaced by a fake toolkit tree: tiny Python scripts at the
same relative paths as the real ones, run with the current interpreter. Their
behaviour per stage is read from `fake_toolkit.json` in the toolkit root
(the working directory of every call), so tests drive real subprocesses.
"""

import sys
from pathlib import Path

import pytest

from voice_clone.core.config import PathConfig, Settings, ToolkitConfig, TrainingDefaults
from voice_clone.trainer.stages import (
    EXTRACT_F0_SCRIPT,
    EXTRACT_FEATURE_SCRIPT,
    INDEX_SCRIPT,
    INFER_SCRIPT,
    PREPROCESS_SCRIPT,
    TRAIN_SCRIPT,
)


FAKE_SCRIPT_BODY = r'''
import json
import os
import signal
import subprocess
import sys
import time


def load_config():
    try:
        with open("fake_toolkit.json") as f:
            return json.load(f)
    except FileNotFoundError:
        return {}


def fail(reason):
    print(f"{STAGE} exploded: {reason}", file=sys.stderr, flush=True)
    sys.exit(3)


def touch(path, content=STAGE):
    if os.path.dirname(path):
        os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as f:
        f.write(content)


def require(path):
    if not os.path.exists(path):
        fail(f"missing input {path}")


config = load_config()
mode = config.get(STAGE, "ok")
args = sys.argv[1:]

if mode == "fail":
    fail("simulated failure")

if mode in ("hang", "stubborn", "worker"):
    if mode == "stubborn":
        signal.signal(signal.SIGTERM, signal.SIG_IGN)
    if mode == "worker":
        # Forked worker sharing our stdout/stderr, like the toolkit's data loaders
        worker = subprocess.Popen([
            sys.executable, "-c",
            "import signal, time; signal.signal(signal.SIGTERM, signal.SIG_IGN); time.sleep(120)",
        ])
        touch("worker.pid", str(worker.pid))
    print("====> Epoch: 1 loss: 0.9000", flush=True)
    time.sleep(120)
    sys.exit(0)

if STAGE == "preprocess":
    dataset_dir, sample_rate, threads, exp_dir, normalize = args
    if not os.listdir(dataset_dir):
        fail("empty dataset")
    touch(os.path.join(exp_dir, "0_gt_wavs", "segments.txt"), sample_rate)

elif STAGE == "extract_f0":
    exp_dir, threads, f0_method = args
    require(os.path.join(exp_dir, "0_gt_wavs"))
    touch(os.path.join(exp_dir, "2a_f0", "done"), f0_method)

elif STAGE == "extract_features":
    exp_dir = args[4]
    require(os.path.join(exp_dir, "2a_f0"))
    touch(os.path.join(exp_dir, "3_feature768", "done"))

elif STAGE == "train":
    opts = dict(zip(args[::2], args[1::2]))
    name = opts["-e"]
    epochs = int(opts["-te"])
    require(os.path.join("logs", name, "3_feature768"))
    delay = float(config.get("epoch_delay", 0))
    print("INFO: loading pretrained generator", flush=True)
    for epoch in range(1, epochs + 1):
        print(f"====> Epoch: {epoch} loss: {1.0 / epoch:.4f}", flush=True)
        time.sleep(delay)
    touch(os.path.join("assets", "weights", name + ".pth"), name)

elif STAGE == "build_index":
    exp_dir, version = args
    require(os.path.join(exp_dir, "3_feature768"))
    if mode != "noindex":
        base = os.path.basename(exp_dir)
        touch(os.path.join(exp_dir, f"added_IVF1_Flat_nprobe_1_{base}_{version}.index"), base)

elif STAGE == "convert":
    opts = dict(zip(args[::2], args[1::2]))
    touch(opts["--output_path"], json.dumps(opts))
'''

FAKE_SCRIPTS = {
    PREPROCESS_SCRIPT: "preprocess",
    EXTRACT_F0_SCRIPT: "extract_f0",
    EXTRACT_FEATURE_SCRIPT: "extract_features",
    TRAIN_SCRIPT: "train",
    INDEX_SCRIPT: "build_index",
    INFER_SCRIPT: "convert",
}


def write_fake_toolkit(root: Path) -> Path:
    for relative, stage in FAKE_SCRIPTS.items():
        script = root / relative
        script.parent.mkdir(parents=True, exist_ok=True)
        script.write_text(f"STAGE = {stage!r}\n" + FAKE_SCRIPT_BODY)
    (root / "logs").mkdir(parents=True, exist_ok=True)
    (root / "assets" / "weights").mkdir(parents=True, exist_ok=True)
    return root


@pytest.fixture
def fake_toolkit(tmp_path):
    """Fake RVC checkout"""
    return write_fake_toolkit(tmp_path / "rvc")


@pytest.fixture
def test_settings(tmp_path, fake_toolkit):
    """Settings pointing every path into tmp_path"""
    settings = Settings(
        toolkit=ToolkitConfig(
            rvc_dir=str(fake_toolkit),
            python=sys.executable,
            cuda_visible_devices="",
            stderr_tail_chars=4000,
            stdout_max_lines=1000,
            kill_grace_seconds=2.0,
        ),
        paths=PathConfig(
            models_dir=str(tmp_path / "models"),
            work_root=str(tmp_path / "work"),
        ),
        training=TrainingDefaults(cancel_wait_seconds=15.0),
    )
    settings.paths.ensure_dirs()
    return settings


@pytest.fixture
def dataset_dir(tmp_path):
    """Dataset directory as produced by the intake layer"""
    path = tmp_path / "dataset"
    path.mkdir()
    (path / "take1.wav").write_bytes(b"RIFF" + b"\x00" * 64)
    return path
