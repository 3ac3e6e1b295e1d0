import threading

from linkdl_components.state import FailedLinkLogger, SessionFactory, UniqueNameAllocator
from linkdl_components.types import USER_AGENT


def test_first_request_keeps_name(tmp_path):
    allocator = UniqueNameAllocator()
    assert allocator.allocate(tmp_path, "Report.pdf") == "Report.pdf"


def test_repeated_requests_get_numbered_names(tmp_path):
    allocator = UniqueNameAllocator()
    names = [allocator.allocate(tmp_path, "Report.pdf") for _ in range(4)]
    assert names == ["Report.pdf", "Report_2.pdf", "Report_3.pdf", "Report_4.pdf"]


def test_existing_file_on_disk_is_not_reused(tmp_path):
    (tmp_path / "Report.pdf").write_bytes(b"old")
    (tmp_path / "Report_2.pdf").write_bytes(b"old")
    allocator = UniqueNameAllocator()
    assert allocator.allocate(tmp_path, "Report.pdf") == "Report_1.pdf"
    assert allocator.allocate(tmp_path, "Report.pdf") == "Report_3.pdf"


def test_names_without_extension(tmp_path):
    allocator = UniqueNameAllocator()
    assert allocator.allocate(tmp_path, "README") == "README"
    assert allocator.allocate(tmp_path, "README") == "README_2"


def test_reserved_names_are_not_handed_out_twice(tmp_path):
    allocator = UniqueNameAllocator()
    allocator.allocate(tmp_path, "Report.pdf")
    assert allocator.allocate(tmp_path, "Report.pdf") == "Report_2.pdf"
    # a link literally titled "Report_2" must not overwrite the file above
    assert allocator.allocate(tmp_path, "Report_2.pdf") == "Report_2_1.pdf"


def test_concurrent_allocation_is_unique(tmp_path):
    allocator = UniqueNameAllocator()
    results = []
    lock = threading.Lock()
    start = threading.Barrier(20)

    def grab():
        start.wait()
        name = allocator.allocate(tmp_path, "data.csv")
        with lock:
            results.append(name)

    threads = [threading.Thread(target=grab) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 20
    assert len(set(results)) == 20
    assert "data.csv" in results


def test_session_factory_is_per_thread():
    factory = SessionFactory("test-agent/1.0")
    main_session = factory.get()
    assert factory.get() is main_session
    assert main_session.headers["User-Agent"] == "test-agent/1.0"

    other = []
    t = threading.Thread(target=lambda: other.append(factory.get()))
    t.start()
    t.join()
    assert other[0] is not main_session
    assert SessionFactory().get().headers["User-Agent"] == USER_AGENT


def test_failed_link_logger_writes_header_once(tmp_path):
    path = tmp_path / "out" / "failed_links.txt"
    logger = FailedLinkLogger(path)
    logger.add("https://example.com/", "https://example.com/a.pdf", "a.pdf", "HTTP 404")
    logger.add("https://example.com/", "https://example.com/b.pdf", "b\tc.pdf", "timed\nout")

    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "timestamp\tpage_url\tfile_url\tfilename\treason"
    assert len(lines) == 3
    assert lines[1].split("\t")[1:] == [
        "https://example.com/",
        "https://example.com/a.pdf",
        "a.pdf",
        "HTTP 404",
    ]
    assert lines[2].split("\t")[3:] == ["b c.pdf", "timed out"]

    FailedLinkLogger(path).add("p", "u", "f", "r")
    assert path.read_text(encoding="utf-8").count("timestamp\t") == 1


def test_temp_names_avoid_existing_and_reserved_files(tmp_path):
    (tmp_path / "Report.pdf.part").write_bytes(b"browser partial")
    allocator = UniqueNameAllocator()
    assert allocator.allocate_temp(tmp_path, "Report.pdf") == "Report.pdf.part1"
    assert allocator.allocate_temp(tmp_path, "Report.pdf") == "Report.pdf.part2"
    assert allocator.allocate_temp(tmp_path, "Other.pdf") == "Other.pdf.part"
    # final names never land on a reserved scratch name
    assert allocator.allocate(tmp_path, "Other.pdf.part") == "Other.pdf_1.part"
