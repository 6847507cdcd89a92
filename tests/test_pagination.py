"""페이지네이션 유틸리티 테스트.

Pagination utility tests — Request normalisation, sort sanitisation,
query suffix and page envelope arithmetic.
"""

import re

import pytest

from handbook.utils.exceptions import ValidationError
from handbook.utils.pagination import (
    PaginationRequest,
    build_page,
    build_paginated_query,
    extract_count,
    normalize_request,
    resolve_sort_column,
    sanitize_identifier,
)

ALLOWED = {"id", "name_en", "name_jp", "created_at"}


class TestNormalizeRequest:
    """요청 정규화 테스트."""

    def test_defaults(self):
        """요청이 없으면 기본값 사용."""
        req = normalize_request(None, ALLOWED)
        assert (req.page, req.limit, req.sort_column, req.sort_direction) == (1, 10, "id", "ASC")

    def test_custom_default_column(self):
        """레포지토리 기본 정렬 컬럼 적용."""
        req = normalize_request(PaginationRequest(), ALLOWED, default_column="created_at")
        assert req.sort_column == "created_at"

    @pytest.mark.parametrize("page", [0, -3])
    def test_page_below_one(self, page):
        """page < 1 은 400."""
        with pytest.raises(ValidationError) as exc_info:
            normalize_request(PaginationRequest(page=page), ALLOWED)
        assert exc_info.value.status_code == 400
        assert exc_info.value.field == "page"

    @pytest.mark.parametrize("limit", [0, 101])
    def test_limit_out_of_range(self, limit):
        """limit 은 1..100."""
        with pytest.raises(ValidationError) as exc_info:
            normalize_request(PaginationRequest(limit=limit), ALLOWED)
        assert exc_info.value.field == "limit"

    def test_limit_bounds_accepted(self):
        """limit 1 과 100 은 허용."""
        assert normalize_request(PaginationRequest(limit=1), ALLOWED).limit == 1
        assert normalize_request(PaginationRequest(limit=100), ALLOWED).limit == 100

    def test_direction_case_insensitive(self):
        """정렬 방향은 대소문자 무관, 대문자로 정규화."""
        assert normalize_request(PaginationRequest(sort_direction="desc"), ALLOWED).sort_direction == "DESC"

    def test_unknown_direction(self):
        """알 수 없는 정렬 방향은 400."""
        with pytest.raises(ValidationError):
            normalize_request(PaginationRequest(sort_direction="SIDEWAYS"), ALLOWED)


class TestSortColumn:
    """정렬 컬럼 정제 테스트."""

    def test_sanitize_strips_everything_outside_alphabet(self):
        """식별자 문자 외에는 모두 제거."""
        cleaned = sanitize_identifier("name_en; DROP TABLE characters;--")
        assert re.fullmatch(r"[A-Za-z0-9_]*", cleaned)
        assert cleaned == "name_enDROPTABLEcharacters"

    def test_injection_attempt_rejected_by_allow_list(self):
        """정제 후에도 허용 목록에 없으면 거부."""
        with pytest.raises(ValidationError) as exc_info:
            resolve_sort_column("name_en; DROP TABLE characters", ALLOWED)
        assert exc_info.value.field == "sort_column"

    def test_stripped_to_allowed_column(self):
        """정제 결과가 허용 컬럼이면 통과."""
        assert resolve_sort_column("name-en", {"nameen"}) == "nameen"
        assert resolve_sort_column(" name_jp ", ALLOWED) == "name_jp"

    def test_empty_after_strip_falls_back(self):
        """정제 후 빈 문자열이면 기본 컬럼."""
        assert resolve_sort_column("';--", ALLOWED) == "id"

    def test_no_allow_list_only_strips(self):
        """허용 목록이 없으면 정제만 수행."""
        assert resolve_sort_column("any(column)", None) == "anycolumn"


class TestBuildPaginatedQuery:
    """ORDER BY / LIMIT / OFFSET 생성 테스트."""

    def test_second_page(self):
        """page 2, limit 10 이면 OFFSET 10."""
        req = normalize_request(PaginationRequest(page=2, limit=10), ALLOWED)
        sql = build_paginated_query("SELECT * FROM characters", req)
        assert sql == "SELECT * FROM characters ORDER BY id ASC LIMIT 10 OFFSET 10"

    def test_direction_and_column(self):
        """정렬 컬럼과 방향 반영."""
        req = normalize_request(
            PaginationRequest(page=3, limit=5, sort_column="name_en", sort_direction="desc"), ALLOWED
        )
        sql = build_paginated_query("SELECT * FROM characters WHERE is_active = :a  ", req)
        assert sql == "SELECT * FROM characters WHERE is_active = :a ORDER BY name_en DESC LIMIT 5 OFFSET 10"


class TestBuildPage:
    """페이지 응답 계산 테스트."""

    def test_middle_page(self):
        """25개, limit 10, page 2."""
        req = PaginationRequest(page=2, limit=10)
        page = build_page(list(range(10)), req, 25)
        assert page.total_pages == 3
        assert page.has_next is True
        assert page.has_prev is True
        assert len(page.data) == 10

    def test_last_page(self):
        """마지막 페이지에는 다음 페이지가 없음."""
        page = build_page(list(range(5)), PaginationRequest(page=3, limit=10), 25)
        assert page.has_next is False
        assert page.has_prev is True

    def test_empty_result(self):
        """결과가 없으면 total_pages 0."""
        page = build_page([], PaginationRequest(), 0)
        assert page.total_pages == 0
        assert page.has_next is False
        assert page.has_prev is False

    def test_data_truncated_to_limit(self):
        """data 는 limit 을 넘지 않음."""
        page = build_page(list(range(15)), PaginationRequest(limit=10), 15)
        assert len(page.data) == 10

    def test_exact_multiple(self):
        """total 이 limit 의 배수일 때."""
        assert build_page([], PaginationRequest(limit=10), 20).total_pages == 2


class TestExtractCount:
    """카운트 추출 테스트."""

    def test_count_key(self):
        assert extract_count([{"count": 7}]) == 7

    def test_count_star_key(self):
        assert extract_count([{"COUNT(*)": 4}]) == 4

    def test_first_column(self):
        assert extract_count([{"total": 9}]) == 9

    def test_no_rows(self):
        assert extract_count([]) == 0
