"""Unit tests for the AWS billing adapter."""

import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from cloudbridge.errors import ApiError, AuthError, ConfigError, ParseError, TransportError
from cloudbridge.models.account import NegativeAmountPolicy
from cloudbridge.providers.aws import AwsBillingProvider, parse_sts_response

STS_OK = """<GetCallerIdentityResponse xmlns="https://sts.amazonaws.com/doc/2011-06-15/">
  <GetCallerIdentityResult>
    <Arn>arn:aws:iam::123456789012:user/billing</Arn>
    <UserId>AIDAEXAMPLE</UserId>
    <Account>123456789012</Account>
  </GetCallerIdentityResult>
  <ResponseMetadata><RequestId>01234567-89ab</RequestId></ResponseMetadata>
</GetCallerIdentityResponse>"""

STS_DENIED = """<ErrorResponse xmlns="https://sts.amazonaws.com/doc/2011-06-15/">
  <Error>
    <Type>Sender</Type>
    <Code>InvalidClientTokenId</Code>
    <Message>The security token included in the request is invalid.</Message>
  </Error>
</ErrorResponse>"""


def grouped_day(day, groups):
    return {
        "TimePeriod": {"Start": day, "End": "ignored"},
        "Total": {},
        "Groups": [
            {"Keys": [service], "Metrics": {"UnblendedCost": {"Amount": amount, "Unit": "USD"}}}
            for service, amount in groups
        ],
        "Estimated": False,
    }


def total_day(day, amount):
    return {"TimePeriod": {"Start": day}, "Total": {"UnblendedCost": {"Amount": amount, "Unit": "USD"}}, "Groups": []}


def ce_response(results, token=None):
    body = {"ResultsByTime": results, "DimensionValueAttributes": []}
    if token:
        body["NextPageToken"] = token
    return httpx.Response(200, json=body)


@pytest.fixture
def provider_for(make_account, mock_client, fixed_clock):
    def _make(handler, **account_kwargs):
        client = mock_client(handler)
        return AwsBillingProvider(make_account(provider="aws", **account_kwargs), client=client, clock=fixed_clock)

    return _make


class TestValidateCredentials:
    """Tests for the STS identity check."""

    def test_valid_credentials(self, provider_for):
        provider = provider_for(lambda request: httpx.Response(200, text=STS_OK))

        assert provider.validate_credentials() is True

        request = provider.client.sent[0]
        assert request.method == "GET"
        assert request.url.host == "sts.us-east-1.amazonaws.com"
        assert request.url.params["Action"] == "GetCallerIdentity"
        assert request.headers["Authorization"].startswith(
            "AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/20240315/us-east-1/sts/aws4_request"
        )
        assert request.headers["X-Amz-Date"] == "20240315T120000Z"

    def test_uses_account_region(self, provider_for):
        provider = provider_for(lambda request: httpx.Response(200, text=STS_OK), region="eu-west-1")

        provider.validate_credentials()

        assert provider.client.sent[0].url.host == "sts.eu-west-1.amazonaws.com"
        assert "/eu-west-1/sts/" in provider.client.sent[0].headers["Authorization"]

    def test_rejected_credentials_return_false(self, provider_for):
        provider = provider_for(lambda request: httpx.Response(403, text=STS_DENIED))
        assert provider.validate_credentials() is False

    def test_rejection_maps_to_auth_error(self, provider_for):
        provider = provider_for(lambda request: httpx.Response(403, text=STS_DENIED))

        with pytest.raises(AuthError) as exc_info:
            provider.get_caller_identity()

        assert exc_info.value.code == "InvalidClientTokenId"
        assert str(exc_info.value).startswith("Credentials rejected")

    def test_network_failure_returns_false(self, provider_for):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert provider_for(handler).validate_credentials() is False

    def test_missing_key_raises_config_error(self, provider_for):
        provider = provider_for(lambda request: httpx.Response(200, text=STS_OK), access_key_id="")

        with pytest.raises(ConfigError):
            provider.validate_credentials()
        assert provider.client.sent == []

    def test_parse_sts_response(self):
        identity = parse_sts_response(STS_OK)
        assert identity.account == "123456789012"
        assert identity.arn == "arn:aws:iam::123456789012:user/billing"

    def test_parse_sts_response_invalid_xml(self):
        with pytest.raises(ParseError):
            parse_sts_response("not xml <")


class TestFetchCostRecords:
    """Tests for GetCostAndUsage grouped by service."""

    def test_request_shape(self, provider_for):
        provider = provider_for(lambda request: ce_response([]))

        provider.fetch_cost_records(date(2024, 3, 1), date(2024, 3, 10))

        request = provider.client.sent[0]
        body = json.loads(request.content)
        assert request.method == "POST"
        assert request.url.host == "ce.us-east-1.amazonaws.com"
        assert request.headers["X-Amz-Target"] == "AWSInsightsIndexService.GetCostAndUsage"
        assert request.headers["Content-Type"] == "application/x-amz-json-1.1"
        assert "/us-east-1/ce/aws4_request" in request.headers["Authorization"]
        # End is exclusive
        assert body["TimePeriod"] == {"Start": "2024-03-01", "End": "2024-03-11"}
        assert body["Granularity"] == "DAILY"
        assert body["Metrics"] == ["UnblendedCost"]
        assert body["GroupBy"] == [{"Type": "DIMENSION", "Key": "SERVICE"}]

    def test_signs_for_us_east_1_regardless_of_account_region(self, provider_for):
        provider = provider_for(lambda request: ce_response([]), region="ap-southeast-1")

        provider.fetch_cost_records(date(2024, 3, 1), date(2024, 3, 1))

        assert "/us-east-1/ce/aws4_request" in provider.client.sent[0].headers["Authorization"]

    def test_records_parsed_and_filtered(self, provider_for):
        results = [
            grouped_day("2024-02-29", [("Amazon S3", "9.00")]),
            grouped_day("2024-03-01", [("Amazon EC2", "12.50"), ("Tax", "0"), ("Credits", "-3.25")]),
            grouped_day("2024-03-02", [("Amazon EC2", "1.10")]),
        ]
        provider = provider_for(lambda request: ce_response(results))

        records = provider.fetch_cost_records(date(2024, 3, 1), date(2024, 3, 2))

        assert [(r.date, r.service, r.amount) for r in records] == [
            (date(2024, 3, 1), "Amazon EC2", Decimal("12.50")),
            (date(2024, 3, 1), "Credits", Decimal("-3.25")),
            (date(2024, 3, 2), "Amazon EC2", Decimal("1.10")),
        ]
        assert records[1].is_credit
        assert all(r.currency == "USD" and r.account_id == "acct-1" for r in records)

    def test_drop_policy_discards_credits(self, provider_for):
        results = [grouped_day("2024-03-01", [("Amazon EC2", "5"), ("Credits", "-1")])]
        provider = provider_for(lambda request: ce_response(results), negative_amounts=NegativeAmountPolicy.DROP)

        records = provider.fetch_cost_records(date(2024, 3, 1), date(2024, 3, 1))

        assert [r.service for r in records] == ["Amazon EC2"]

    def test_follows_pagination(self, provider_for):
        def handler(request):
            body = json.loads(request.content)
            if "NextPageToken" not in body:
                return ce_response([grouped_day("2024-03-01", [("EC2", "1")])], token="page-2")
            assert body["NextPageToken"] == "page-2"
            return ce_response([grouped_day("2024-03-02", [("EC2", "2")])])

        provider = provider_for(handler)

        records = provider.fetch_cost_records(date(2024, 3, 1), date(2024, 3, 2))

        assert len(provider.client.sent) == 2
        assert [r.amount for r in records] == [Decimal("1"), Decimal("2")]

    def test_inverted_range_raises_before_network(self, provider_for):
        provider = provider_for(lambda request: ce_response([]))

        with pytest.raises(ConfigError):
            provider.fetch_cost_records(date(2024, 3, 2), date(2024, 3, 1))
        assert provider.client.sent == []


class TestErrors:
    """Tests for Cost Explorer error mapping."""

    def test_unrecognized_client_is_auth_error(self, provider_for):
        body = {"__type": "com.amazon.coral.service#UnrecognizedClientException", "message": "bad token"}
        provider = provider_for(lambda request: httpx.Response(400, json=body))

        with pytest.raises(AuthError) as exc_info:
            provider.fetch_cost_records(date(2024, 3, 1), date(2024, 3, 1))
        assert exc_info.value.code == "UnrecognizedClientException"

    def test_validation_error_is_api_error(self, provider_for):
        body = {"__type": "ValidationException", "Message": "bad window"}
        provider = provider_for(lambda request: httpx.Response(400, json=body))

        with pytest.raises(ApiError) as exc_info:
            provider.fetch_cost_records(date(2024, 3, 1), date(2024, 3, 1))
        assert exc_info.value.code == "ValidationException"
        assert exc_info.value.status == 400

    def test_server_error_is_transport_error(self, provider_for):
        provider = provider_for(lambda request: httpx.Response(503, text="unavailable"))

        with pytest.raises(TransportError):
            provider.fetch_cost_records(date(2024, 3, 1), date(2024, 3, 1))

    def test_timeout_is_transport_error(self, provider_for):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransportError, match="timed out"):
            provider_for(handler).fetch_cost_records(date(2024, 3, 1), date(2024, 3, 1))

    def test_malformed_body_is_parse_error(self, provider_for):
        provider = provider_for(lambda request: httpx.Response(200, text="{not json"))

        with pytest.raises(ParseError):
            provider.fetch_cost_records(date(2024, 3, 1), date(2024, 3, 1))

    def test_unexpected_shape_is_parse_error(self, provider_for):
        provider = provider_for(lambda request: httpx.Response(200, json={"ResultsByTime": "nope"}))

        with pytest.raises(ParseError):
            provider.fetch_cost_records(date(2024, 3, 1), date(2024, 3, 1))


class TestSummaryAndTrend:
    """Tests for monthly summary and daily trend."""

    def test_summary_compares_months(self, provider_for):
        def handler(request):
            start = json.loads(request.content)["TimePeriod"]["Start"]
            if start == "2024-03-01":
                return ce_response([grouped_day("2024-03-05", [("EC2", "100"), ("S3", "50")])])
            assert start == "2024-02-01"
            return ce_response([grouped_day("2024-02-10", [("EC2", "100")])])

        provider = provider_for(handler, name="Prod")

        summary = provider.fetch_cost_summary()

        assert summary.provider == "aws"
        assert summary.account_name == "Prod"
        assert summary.current_month_cost == Decimal("150")
        assert summary.last_month_cost == Decimal("100")
        assert summary.month_over_month_change_pct == pytest.approx(50.0)
        assert [s.service for s in summary.current_month_details] == ["EC2", "S3"]
        assert summary.currency == "USD"

        windows = [json.loads(r.content)["TimePeriod"] for r in provider.client.sent]
        assert {"Start": "2024-03-01", "End": "2024-03-16"} in windows
        assert {"Start": "2024-02-01", "End": "2024-03-01"} in windows

    def test_summary_with_empty_last_month(self, provider_for):
        def handler(request):
            start = json.loads(request.content)["TimePeriod"]["Start"]
            if start == "2024-03-01":
                return ce_response([grouped_day("2024-03-05", [("EC2", "10")])])
            return ce_response([])

        summary = provider_for(handler).fetch_cost_summary()

        assert summary.last_month_cost == Decimal("0")
        assert summary.month_over_month_change_pct == 100.0

    def test_trend_keeps_zero_days(self, provider_for):
        results = [total_day("2024-03-01", "4.5"), total_day("2024-03-02", "0"), total_day("2024-03-03", "2")]
        provider = provider_for(lambda request: ce_response(results))

        trend = provider.fetch_daily_trend(date(2024, 3, 1), date(2024, 3, 3))

        assert "GroupBy" not in json.loads(provider.client.sent[0].content)
        assert [(d.date, d.amount) for d in trend.daily_costs] == [
            (date(2024, 3, 1), Decimal("4.5")),
            (date(2024, 3, 2), Decimal("0")),
            (date(2024, 3, 3), Decimal("2")),
        ]
        assert trend.currency == "USD"

    def test_currency_override(self, provider_for):
        provider = provider_for(lambda request: ce_response([]), currency="EUR")
        trend = provider.fetch_daily_trend(date(2024, 3, 1), date(2024, 3, 1))
        assert trend.currency == "EUR"
        assert trend.daily_costs == []
