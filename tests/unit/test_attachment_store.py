from fieldops.services import attachment_store


async def test_save_attachment_writes_under_dispatch_dir(attachment_dir):
    path = await attachment_store.save_attachment(b"%PDF-1.4", "D1", "A1", "Report.PDF")

    assert path.endswith("A1.pdf")
    assert (attachment_dir / "D1" / "A1.pdf").read_bytes() == b"%PDF-1.4"


async def test_save_attachment_without_extension(attachment_dir):
    await attachment_store.save_attachment(b"x", "D1", "A2", "signature")
    assert (attachment_dir / "D1" / "A2").exists()


def test_size_in_mb():
    assert attachment_store.size_in_mb(b"") == 0
    assert attachment_store.size_in_mb(b"x" * 1024 * 1024) == 1.0
