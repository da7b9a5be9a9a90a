import httpx
import pytest
import respx

from prospect_finder.schemas.search import JobPlatform
from prospect_finder.services.adapters import JOB_PLATFORMS, get_adapter_for_platform
from prospect_finder.services.adapters.actiris import ActirisAdapter
from prospect_finder.services.adapters.ictjob import ICTJobAdapter
from prospect_finder.services.adapters.indeed import IndeedAdapter
from prospect_finder.services.adapters.jobat import JobatAdapter
from prospect_finder.services.adapters.jobsora import JobsoraAdapter
from prospect_finder.services.adapters.linkedin import LinkedInAdapter
from prospect_finder.services.fetcher import HttpFetcher


def _fetcher():
    return HttpFetcher(delay_min=0, delay_max=0)


def _ictjob_page(*titles):
    items = "".join(
        f'<li class="search-item clearfix"><a class="search-item-link" href="/en/it-job/{i}">'
        f'<h2 class="job-title">{title}</h2></a></li>'
        for i, title in enumerate(titles)
    )
    return f"<ul>{items}</ul>"


def test_get_adapter_for_every_platform():
    for platform in JOB_PLATFORMS:
        adapter = get_adapter_for_platform(platform, fetcher=_fetcher())
        assert adapter.platform == platform
        assert adapter.source == platform.value


def test_get_adapter_accepts_plain_ids():
    assert isinstance(get_adapter_for_platform("jobat", fetcher=_fetcher()), JobatAdapter)


def test_get_adapter_rejects_unknown_platform():
    with pytest.raises(ValueError, match="Unknown platform"):
        get_adapter_for_platform("monster", fetcher=_fetcher())


def test_search_urls():
    fetcher = _fetcher()
    assert ICTJobAdapter(fetcher).search_urls("web developer", "Gent", 2) == [
        "https://www.ictjob.be/en/search-it-jobs?q=web+developer&location=Gent&page=2"
    ]
    assert JobatAdapter(fetcher).search_urls("Web Developer", None, 1) == [
        "https://www.jobat.be/en/jobs/results/web-developer"
    ]
    assert JobatAdapter(fetcher).search_urls("web developer", None, 3) == [
        "https://www.jobat.be/en/jobs/results/web-developer?page=3"
    ]
    assert JobsoraAdapter(fetcher).search_urls("web dev", None, 2) == ["https://be.jobsora.com/emplois-web-dev?page=2"]
    assert ActirisAdapter(fetcher).search_urls("web", None, 1) == [
        "https://www.actiris.brussels/api/offers?search=web&page=1"
    ]


def test_linkedin_fetches_two_offsets_per_page():
    urls = LinkedInAdapter(_fetcher()).search_urls("react dev", "Belgium", 2)
    assert len(urls) == 2
    assert urls[0].endswith("keywords=react+dev&location=Belgium&start=20")
    assert urls[1].endswith("start=30")


@pytest.mark.asyncio
async def test_scrape_matches_against_full_keyword_list():
    keywords = ["web developer", "développeur web", "react developer"]
    with respx.mock:
        respx.get("https://www.ictjob.be/en/search-it-jobs").mock(
            return_value=httpx.Response(200, text=_ictjob_page("React Developer", "Office Manager"))
        )
        async with _fetcher() as fetcher:
            result = await ICTJobAdapter(fetcher).scrape(keywords)

    assert result.error is None
    # Same page for every keyword: URL dedup keeps one copy of each posting
    assert [job.title for job in result.jobs] == ["React Developer", "Office Manager"]
    assert "react developer" in result.jobs[0].keywords_matched
    assert "web developer" in result.jobs[0].keywords_matched
    # No match in the title: the seed that fetched the page is kept
    assert result.jobs[1].keywords_matched == ["web developer"]
    assert all(job.source == "ictjob" for job in result.jobs)


@pytest.mark.asyncio
async def test_scrape_continues_after_a_failing_keyword():
    with respx.mock:
        route = respx.get("https://www.ictjob.be/en/search-it-jobs")
        route.side_effect = [
            httpx.Response(503),
            httpx.Response(200, text=_ictjob_page("PHP Developer")),
        ]
        async with _fetcher() as fetcher:
            result = await ICTJobAdapter(fetcher).scrape(["web developer", "php developer"])

    assert route.call_count == 2
    assert [job.title for job in result.jobs] == ["PHP Developer"]
    assert result.error is None


@pytest.mark.asyncio
async def test_scrape_reports_error_only_when_empty_and_failed():
    with respx.mock:
        respx.get("https://www.ictjob.be/en/search-it-jobs").mock(return_value=httpx.Response(500))
        async with _fetcher() as fetcher:
            result = await ICTJobAdapter(fetcher).scrape(["web developer"])

    assert result.jobs == []
    assert "500" in result.error


@pytest.mark.asyncio
async def test_linkedin_empty_result_reports_anti_bot_message():
    with respx.mock:
        respx.get(url__startswith="https://www.linkedin.com/jobs-guest/").mock(
            return_value=httpx.Response(200, text="")
        )
        async with _fetcher() as fetcher:
            result = await LinkedInAdapter(fetcher).scrape(["web developer"])

    assert result.jobs == []
    assert result.error.startswith("LinkedIn: no results found")


@pytest.mark.asyncio
async def test_jobsora_defaults_location_to_belgium():
    html = '<article class="c-job-item"><h2 class="c-job-item__title"><a href="/emploi-1">Web dev</a></h2></article>'
    with respx.mock:
        respx.get("https://be.jobsora.com/emplois-web-dev").mock(return_value=httpx.Response(200, text=html))
        async with _fetcher() as fetcher:
            result = await JobsoraAdapter(fetcher).scrape(["web dev"])

    assert result.jobs[0].location == "Belgium"


@pytest.mark.asyncio
async def test_actiris_uses_json_api_first():
    payload = {"items": [{"id": 42, "title": "Développeur web", "employer": "Bruxelles Propreté"}]}
    with respx.mock(assert_all_called=False) as respx_mock:
        api = respx_mock.get("https://www.actiris.brussels/api/offers").mock(return_value=httpx.Response(200, json=payload))
        html = respx_mock.get("https://www.actiris.brussels/en/citizens/find-a-job/job-offers")
        async with _fetcher() as fetcher:
            result = await ActirisAdapter(fetcher).scrape(["développeur web"])

    assert api.called
    assert not html.called
    assert result.jobs[0].company == "Bruxelles Propreté"
    assert result.jobs[0].location == "Brussels"


@pytest.mark.asyncio
async def test_actiris_falls_back_to_html_listing():
    listing = '<div class="views-row"><h3><a href="/en/citizens/job-offer/9">Web developer</a></h3></div>'
    with respx.mock:
        respx.get("https://www.actiris.brussels/api/offers").mock(return_value=httpx.Response(404))
        html = respx.get("https://www.actiris.brussels/en/citizens/find-a-job/job-offers").mock(
            return_value=httpx.Response(200, text=listing)
        )
        async with _fetcher() as fetcher:
            result = await ActirisAdapter(fetcher).scrape(["web developer"])

    assert html.called
    assert result.jobs[0].url == "https://www.actiris.brussels/en/citizens/job-offer/9"


INDEED_PAGE = """
<div class="job_seen_beacon">
  <h2 class="jobTitle"><a data-jk="k1" href="/rc/clk?jk=k1">Frontend Developer</a></h2>
  <span data-testid="company-name">Acme</span>
</div>
"""


@pytest.mark.asyncio
async def test_indeed_keep_alive_reuses_one_browser(fake_browser):
    search = "https://be.indeed.com/jobs?q=frontend+developer&sort=date"
    session, factory = fake_browser(pages={search: INDEED_PAGE, search + "&start=10": INDEED_PAGE})
    adapter = IndeedAdapter(_fetcher(), browser_factory=factory)
    adapter.set_keep_alive(True)

    first = await adapter.scrape(["frontend developer"], page=1)
    second = await adapter.scrape(["frontend developer"], page=2)
    assert not session.closed
    await adapter.close()

    assert len(factory.launches) == 1
    assert session.closed
    assert first.jobs[0].url == "https://be.indeed.com/viewjob?jk=k1"
    assert second.jobs[0].company == "Acme"


@pytest.mark.asyncio
async def test_indeed_closes_browser_without_keep_alive(fake_browser):
    session, factory = fake_browser(pages={})
    adapter = IndeedAdapter(_fetcher(), browser_factory=factory)

    result = await adapter.scrape(["frontend developer"])

    assert session.closed
    assert result.jobs == []
    assert "may block automated requests" in result.error


def test_platform_catalogue_lists_all_platforms():
    assert set(JOB_PLATFORMS) == set(JobPlatform)
    assert JOB_PLATFORMS[JobPlatform.INDEED]["browser"] is True
