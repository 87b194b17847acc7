"""
tests/test_waybackurls.py

Command line driver: flags, domain input, per-domain sequencing.
"""

import asyncio
import io

import pytest

import waybackurls


@pytest.fixture()
def fake_aggregate(monkeypatch):
    calls = []
    canned = {
        "example.com": {"http://example.com/a": "", "http://example.com/b": "20180101000000"},
        "example.org": {"http://example.org/": "20200101000000"},
    }

    async def aggregate(domain, include_subdomains, providers, session, verbose):
        calls.append((domain, include_subdomains))
        return dict(canned.get(domain, {}))

    monkeypatch.setattr(waybackurls, "aggregate", aggregate)
    return calls


def run_main(argv):
    return asyncio.run(waybackurls.main(argv))


def test_url_only_mode(fake_aggregate, capsys):
    assert run_main(["example.com"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert sorted(out) == ["http://example.com/a", "http://example.com/b"]
    assert fake_aggregate == [("example.com", True)]


def test_dates_mode(fake_aggregate, capsys):
    run_main(["--dates", "example.com"])
    captured = capsys.readouterr()
    assert captured.out == "2018-01-01T00:00:00+00:00 http://example.com/b\n"
    assert "failed to parse date [] for URL [http://example.com/a]" in captured.err


def test_no_subs(fake_aggregate):
    run_main(["--no-subs", "example.com"])
    assert fake_aggregate == [("example.com", False)]


def test_domains_run_in_order(fake_aggregate, capsys):
    run_main(["example.org", "example.com"])
    assert [d for d, _ in fake_aggregate] == ["example.org", "example.com"]
    assert capsys.readouterr().out.splitlines()[0] == "http://example.org/"


def test_domains_from_stdin(fake_aggregate, monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("example.com\n\n  example.org  \n"))
    run_main([])
    assert [d for d, _ in fake_aggregate] == ["example.com", "example.org"]


def test_get_versions_is_a_no_op(fake_aggregate, capsys):
    assert run_main(["--get-versions", "example.com"]) == 0
    assert capsys.readouterr().out == ""
    assert fake_aggregate == []


def test_output_file(fake_aggregate, tmp_path, capsys):
    target = tmp_path / "out" / "urls.txt"
    run_main(["-o", str(target), "example.com", "example.org"])
    assert sorted(target.read_text().splitlines()) == [
        "http://example.com/a",
        "http://example.com/b",
        "http://example.org/",
    ]
    assert f"[+] wrote 3 urls to {target}" in capsys.readouterr().err


def test_flags_parse():
    args = waybackurls.build_parser().parse_args(["--timeout", "2.5", "--cc-index", "CC-MAIN-2024-10", "-v"])
    assert args.timeout == 2.5
    assert args.cc_index == "CC-MAIN-2024-10"
    assert args.verbose
    assert args.domains == []
