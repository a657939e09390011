from llama_sidecar.configs.options import ModelOptions
from llama_sidecar.llama import command
from llama_sidecar.llama.command import available_cores, build_args, thread_count
from llama_sidecar.llama.probe import (
    NO_CONVERSATION,
    NO_CONVERSATION_LEGACY,
    NO_DISPLAY_PROMPT,
    NO_INTERACTIVE,
    NO_MMAP,
    TOP_P,
)

ALL_FLAGS = frozenset(
    {TOP_P, NO_DISPLAY_PROMPT, NO_MMAP, NO_INTERACTIVE, NO_CONVERSATION, NO_CONVERSATION_LEGACY}
)


def test_thread_count_leaves_one_core():
    assert thread_count(8) == 7
    assert thread_count(2) == 1


def test_thread_count_never_below_one():
    assert thread_count(1) == 1
    assert thread_count(0) == 1


def test_available_cores_falls_back_to_one(monkeypatch):
    monkeypatch.setattr(command.psutil, "cpu_count", lambda logical=True: None)
    assert available_cores() == 1


def test_build_args_minimal_capabilities():
    """Test that only the mandatory generation flags are emitted."""
    args = build_args("/models/a.gguf", "Hi", ModelOptions(), cores=4)

    assert args == [
        "-m", "/models/a.gguf",
        "-p", "Hi",
        "--temp", "0.7",
        "--seed", "42",
        "--ctx-size", "2048",
        "--n-predict", "500",
        "--threads", "3",
    ]


def test_build_args_full_capabilities_order():
    args = build_args("m.gguf", "Hi", ModelOptions(top_p=0.5), ALL_FLAGS, cores=4)

    assert args[14:] == [
        TOP_P, "0.5",
        NO_DISPLAY_PROMPT,
        NO_MMAP,
        NO_INTERACTIVE,
        NO_CONVERSATION,
    ]
    assert NO_CONVERSATION_LEGACY not in args


def test_build_args_legacy_conversation_flag():
    args = build_args("m.gguf", "Hi", ModelOptions(), {NO_CONVERSATION_LEGACY}, cores=2)

    assert args[-1] == NO_CONVERSATION_LEGACY
    assert TOP_P not in args


def test_build_args_keeps_prompt_as_single_argument():
    prompt = "Line one\nline \"two\" with spaces"
    args = build_args("m.gguf", prompt, ModelOptions(), cores=2)

    assert args[args.index("-p") + 1] == prompt


def test_build_args_uses_detected_cores(monkeypatch):
    monkeypatch.setattr(command, "available_cores", lambda: 16)
    args = build_args("m.gguf", "Hi", ModelOptions())

    assert args[args.index("--threads") + 1] == "15"
