import csv

import pytest

import experiments as exp
import huffman as huff


def test_generators_are_seeded():
    assert exp.generate_dataset("zipf64", 512, 3) == exp.generate_dataset("zipf64", 512, 3)
    name, data = exp.generate_dataset("english_like", 256, 1)
    assert name == "english_like"
    assert len(data) == 256


def test_unknown_generator():
    with pytest.raises(ValueError):
        exp.generate_dataset("nonsense", 16, 0)


def test_entropy():
    assert exp.shannon_entropy(huff.frequency_table("aabb")) == pytest.approx(1.0)
    assert exp.shannon_entropy(huff.frequency_table("")) == 0.0


@pytest.mark.parametrize("pipeline", exp.PIPELINES)
@pytest.mark.parametrize("generator", ["zipf128", "english_like", "single_symbol"])
def test_run_one(pipeline, generator):
    _, data = exp.generate_dataset(generator, 2048, 5)
    row = exp.run_one(data, pipeline)
    assert row.correctness_ok == 1
    assert row.optimal_ok == 1
    assert row.file_size_bytes == 2048
    assert row.compressed_bytes == (row.compressed_bits + row.pad_bits) // 8


def test_pipelines_agree_on_size():
    _, data = exp.generate_dataset("repetitive90", 4096, 9)
    memory = exp.run_one(data, "memory")
    on_disk = exp.run_one(data, "file")
    assert memory.compressed_bits == on_disk.compressed_bits
    assert memory.pad_bits == on_disk.pad_bits


def test_run_one_bad_pipeline():
    with pytest.raises(ValueError):
        exp.run_one(b"abc", "carrier-pigeon")


def test_csv_and_summary(tmp_path):
    rows = []
    for run_id in (1, 2):
        row = exp.run_one(b"hello huffman", "memory")
        row.exp_name = "unit"
        row.dataset_name = "hello"
        row.run_id = run_id
        rows.append(row)

    exp.write_csv(tmp_path / "metrics.csv", rows)
    exp.group_summary(rows, tmp_path / "summary.csv")

    with (tmp_path / "metrics.csv").open(newline="", encoding="utf-8") as f:
        assert len(list(csv.DictReader(f))) == 2
    with (tmp_path / "summary.csv").open(newline="", encoding="utf-8") as f:
        summary = list(csv.DictReader(f))
    assert len(summary) == 1
    assert summary[0]["n_runs"] == "2"
    assert float(summary[0]["correctness_ok_rate"]) == 1.0


def test_main_small_run(tmp_path):
    sample = tmp_path / "sample.txt"
    sample.write_text("It was the best of times, it was the worst of times.\n" * 10, encoding="utf-8")
    outdir = tmp_path / "results"
    code = exp.main([
        "--outdir", str(outdir), "--runs", "1",
        "--exp1_size_kb", "1", "--exp1_generators", "zipf64,single_symbol",
        "--no_exp2",
        "--files", str(sample),
    ])
    assert code == 0
    assert (outdir / "metrics.csv").exists()
    assert (outdir / "summary.csv").exists()
    assert (outdir / "exp1_compression_ratio.png").exists()
    assert (outdir / "exp3_compression_ratio.png").exists()


def test_size_scaling_charts(tmp_path):
    rows = []
    for size in (256, 512):
        _, data = exp.generate_dataset("zipf64", size, 1)
        for pipeline in exp.PIPELINES:
            row = exp.run_one(data, pipeline)
            row.exp_name = "exp2_size_scaling"
            row.dataset_name = "zipf64"
            rows.append(row)

    exp.plot_experiment_2(rows, tmp_path)
    assert (tmp_path / "exp2_encode_time_zipf64.png").exists()
    assert (tmp_path / "exp2_compression_ratio_zipf64.png").exists()


@pytest.mark.parametrize("pipeline", exp.PIPELINES)
def test_run_one_text_mode(pipeline):
    data = "naïve café, crème brûlée\n".encode("utf-8") * 20
    row = exp.run_one(data, pipeline, binary=False)
    assert row.correctness_ok == 1
    assert row.optimal_ok == 1
    # characters, not bytes, are the symbols
    assert row.unique_symbols == len(set(data.decode("utf-8")))


def test_main_binary_files(tmp_path):
    sample = tmp_path / "sample.bin"
    sample.write_bytes(bytes(range(256)) + b"\xff\xfe" * 50)
    outdir = tmp_path / "results"
    code = exp.main([
        "--outdir", str(outdir), "--runs", "1", "--no_exp1", "--no_exp2", "--no_plots",
        "--files", str(sample), "--binary",
    ])
    assert code == 0
    with (outdir / "metrics.csv").open(newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 1
    assert rows[0]["unique_symbols"] == "256"
