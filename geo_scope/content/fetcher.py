"""
Safe URL Fetcher
================
SSRF対策付きでWebページのテキストを取得

- http/https 以外のスキーム、ローカル系ホスト名、プライベートIPを拒否
- DNS解決した全アドレスを再検証（SKIP_DNS_SSRF_CHECK=true で開発時のみ省略可）
- リダイレクトは手動で追跡し、各ホップの遷移先を再検証
- タイムアウトとレスポンスサイズの上限（ストリーミング中に打ち切り）
- HTMLはBeautifulSoup、PDFはpdfplumberでテキスト抽出
"""

from __future__ import annotations

import asyncio
import io
import ipaddress
import re
import socket
from typing import Awaitable, Callable, Optional
from urllib.parse import urljoin, urlparse

import httpx
import pdfplumber
from bs4 import BeautifulSoup, NavigableString

from ..config import Settings, load_settings
from ..errors import HttpStatusError, NetworkError, ParseError, SecurityRejection, ValidationError


Resolver = Callable[[str], Awaitable[list[str]]]

BLOCKED_HOSTNAMES = {
    "localhost",
    "localhost.localdomain",
    "metadata.google.internal",
}
BLOCKED_HOST_SUFFIXES = (".localhost", ".local")

BLOCK_TAGS = ['h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'p', 'li', 'br', 'div', 'tr']

PRIVATE_IPV4_NETWORKS = [
    ipaddress.ip_network(n) for n in (
        "0.0.0.0/8",
        "10.0.0.0/8",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "100.64.0.0/10",
        "198.18.0.0/15",
    )
]
PRIVATE_IPV6_NETWORKS = [
    ipaddress.ip_network(n) for n in (
        "::1/128",
        "::/128",
        "fc00::/7",
        "fe80::/10",
    )
]

REDIRECT_STATUSES = {301, 302, 303, 307, 308}


def is_private_ip(value: str) -> bool:
    """
    プライベート・ループバック・リンクローカル等のアドレスか判定

    IPv4射影IPv6アドレス（::ffff:a.b.c.d）はIPv4として再判定する。
    """
    try:
        addr = ipaddress.ip_address(value.strip("[]").split("%")[0])
    except ValueError:
        return False

    if isinstance(addr, ipaddress.IPv6Address):
        if addr.ipv4_mapped is not None:
            return is_private_ip(str(addr.ipv4_mapped))
        return any(addr in net for net in PRIVATE_IPV6_NETWORKS)
    return any(addr in net for net in PRIVATE_IPV4_NETWORKS)


def is_blocked_hostname(hostname: str) -> bool:
    """ローカルネットワーク向けのホスト名か判定"""
    host = hostname.lower().rstrip(".")
    return host in BLOCKED_HOSTNAMES or host.endswith(BLOCKED_HOST_SUFFIXES)


async def resolve_host(hostname: str) -> list[str]:
    """ホスト名をDNS解決してアドレスのリストを返す"""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    return list({info[4][0] for info in infos})


class SafeUrlFetcher:
    """
    SSRF対策付きURLフェッチャー

    Args:
        settings: タイムアウト・サイズ上限・リダイレクト回数の設定
        transport: httpx のトランスポート（テスト用）
        resolver: DNSリゾルバー（テスト用）
    """

    MAX_CONTENT_LENGTH = 8000  # 抽出テキストの最大文字数

    BROWSER_HEADERS = {
        "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,application/pdf;q=0.8,*/*;q=0.7",
        "accept-language": "en-US,en;q=0.9,zh-CN;q=0.8,ja;q=0.7",
        "user-agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36",
    }

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        resolver: Optional[Resolver] = None,
    ):
        self.settings = settings or load_settings()
        self._transport = transport
        self._resolver = resolver or resolve_host
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """httpxクライアントを取得（リダイレクトは自前で追跡する）"""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.settings.fetch_timeout,
                follow_redirects=False,
                headers=self.BROWSER_HEADERS,
                transport=self._transport,
            )
        return self._http_client

    # =========================================================================
    # Validation
    # =========================================================================

    async def validate_url(self, url: str) -> None:
        """
        URLがSSRF対象でないことを検証

        Raises:
            ValidationError: URLとして不正
            SecurityRejection: スキーム・ホスト名・IPがブロック対象
            NetworkError: DNS解決に失敗
        """
        try:
            parsed = urlparse(url)
            hostname = parsed.hostname
        except ValueError:
            raise ValidationError("Invalid URL") from None
        if not parsed.scheme or not hostname:
            raise ValidationError("Invalid URL")

        if parsed.scheme.lower() not in ("http", "https"):
            raise SecurityRejection("Only http/https URLs are allowed", url)

        if is_blocked_hostname(hostname):
            raise SecurityRejection("Private network URL is not allowed", url)

        try:
            ipaddress.ip_address(hostname)
            is_literal_ip = True
        except ValueError:
            is_literal_ip = False

        if is_literal_ip:
            if is_private_ip(hostname):
                raise SecurityRejection("Private IP URL is not allowed", url)
            return

        if self.settings.skip_dns_ssrf_check:
            return

        try:
            addresses = await self._resolver(hostname)
        except (OSError, UnicodeError):
            raise NetworkError("Hostname resolution failed") from None
        if not addresses:
            raise NetworkError("Hostname resolution failed")
        if any(is_private_ip(a) for a in addresses):
            raise SecurityRejection("Resolved private IP is not allowed", url)

    # =========================================================================
    # Fetch
    # =========================================================================

    async def fetch(self, url: str) -> tuple[str, str, str]:
        """
        URLからテキストコンテンツを取得

        Args:
            url: 取得するURL

        Returns:
            tuple: (テキスト, メディアタイプ "HTML"/"PDF", リダイレクト後の最終URL)

        Raises:
            ValidationError, SecurityRejection, NetworkError
            ParseError: 本文の抽出に失敗した場合
        """
        try:
            body, content_type, final_url = await asyncio.wait_for(
                self._fetch_raw(url), timeout=self.settings.fetch_timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise NetworkError("URL fetch timed out") from None
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as e:
            raise NetworkError(f"Failed to fetch URL: {e}") from e

        if "pdf" in content_type or final_url.lower().endswith(".pdf"):
            media_type = "PDF"
            text = self._extract_pdf(body)
        else:
            media_type = "HTML"
            text = self._extract_html(self._decode(body, content_type))

        text = self._normalize_text(text)
        if len(text) > self.MAX_CONTENT_LENGTH:
            text = text[:self.MAX_CONTENT_LENGTH] + "..."

        if final_url != url:
            print(f"[Web] {media_type} {len(text)}文字 <- {final_url} (リダイレクト最終URL)")
        else:
            print(f"[Web] {media_type} {len(text)}文字 <- {url}")

        return text, media_type, final_url

    async def fetch_text(self, url: str) -> str:
        """URLから抽出テキストのみを取得"""
        text, _, _ = await self.fetch(url)
        return text

    async def _fetch_raw(self, url: str) -> tuple[bytes, str, str]:
        """リダイレクトを検証しながら追跡し、本文を上限付きで読み込む"""
        client = await self._get_http_client()
        current = url

        for _ in range(self.settings.fetch_max_redirects + 1):
            await self.validate_url(current)

            async with client.stream("GET", current) as response:
                if response.status_code in REDIRECT_STATUSES:
                    location = response.headers.get("location")
                    if not location:
                        raise NetworkError("Redirect location missing")
                    current = urljoin(current, location)
                    continue

                if not 200 <= response.status_code < 300:
                    raise HttpStatusError(response.status_code)

                body = await self._read_limited(response)
                content_type = response.headers.get("content-type", "").lower()
                return body, content_type, current

        raise NetworkError("Too many redirects")

    async def _read_limited(self, response: httpx.Response) -> bytes:
        """レスポンス本文をサイズ上限付きで読み込む"""
        max_bytes = self.settings.fetch_max_bytes
        too_large = NetworkError(f"URL content too large (max {max_bytes} bytes)")

        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            raise too_large

        chunks = []
        total = 0
        async for chunk in response.aiter_bytes():
            total += len(chunk)
            if total > max_bytes:
                raise too_large
            chunks.append(chunk)
        return b"".join(chunks)

    # =========================================================================
    # Extraction
    # =========================================================================

    @staticmethod
    def _decode(body: bytes, content_type: str) -> str:
        match = re.search(r'charset=([\w-]+)', content_type)
        encoding = match.group(1) if match else "utf-8"
        try:
            return body.decode(encoding, errors="replace")
        except LookupError:
            return body.decode("utf-8", errors="replace")

    def _normalize_text(self, text: str) -> str:
        """テキストを正規化（行内の空白を詰め、空行を除去）"""
        lines = (re.sub(r'\s+', ' ', line).strip() for line in text.splitlines())
        return '\n'.join(line for line in lines if line)

    def _extract_html(self, html: str) -> str:
        """HTMLからテキストを抽出（ブロック要素の境界は改行で残す）"""
        try:
            soup = BeautifulSoup(html, 'html.parser')

            for tag in soup(['script', 'style', 'nav', 'header', 'footer', 'aside', 'noscript']):
                tag.decompose()

            # ソース上の改行はインライン要素内の空白として扱う
            for string in soup.find_all(string=True):
                if type(string) is NavigableString:
                    string.replace_with(re.sub(r'\s+', ' ', string))

            for tag in soup.find_all(BLOCK_TAGS):
                tag.insert_before('\n')
                tag.insert_after('\n')

            return soup.get_text()
        except Exception as e:
            raise ParseError(f"Failed to extract HTML text: {e}") from e

    def _extract_pdf(self, content: bytes) -> str:
        """PDFからテキストを抽出"""
        text_parts = []
        try:
            with pdfplumber.open(io.BytesIO(content)) as pdf:
                for page in pdf.pages:
                    page_text = page.extract_text()
                    if page_text:
                        text_parts.append(page_text)
        except Exception as e:
            raise ParseError(f"Failed to extract PDF text: {e}") from e
        return '\n'.join(text_parts)

    async def close(self):
        """リソースを解放"""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
