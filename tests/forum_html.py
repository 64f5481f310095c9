"""HTML and fake-transport helpers shared by the tests."""

from typing import Dict, List, Optional, Union

import orjson

from baha_miner.errors import TransientFetchError


def reply_item(name: str, user_id: str, comment: str) -> str:
    return f"""
    <div class="c-reply__item"><div><div class="reply-content">
      <a class="reply-content__user" href="https://home.gamer.com.tw/{user_id}">{name}</a>
      <article class="c-article"><span class="comment_content">{comment}</span></article>
    </div></div></div>
    """


def floor_section(
    floor_index: int,
    name: str = "poster",
    user_id: str = "poster01",
    content: str = "<p>hello</p>",
    replies: str = "",
    section_id: Optional[str] = None,
) -> str:
    section_id = section_id or f"post_{floor_index}"
    return f"""
    <section class="c-section" id="{section_id}">
      <div class="c-section__main">
        <div class="c-post__header__author">
          <a class="floor" data-floor="{floor_index}">#{floor_index}</a>
          <a class="username">{name}</a>
          <a class="userid">{user_id}</a>
        </div>
        <div class="c-article__content">{content}</div>
        <div class="c-reply">{replies}</div>
      </div>
    </section>
    """


def truncated_replies(bsn: int, snb: int) -> str:
    return f"""
    <div class="nocontent"><a class="more-reply" onclick="extendComment({bsn}, {snb});">more</a></div>
    """


def thread_page(sections: List[str], title: str = "Test Building", last_page: int = 1) -> str:
    buttons = "".join(f'<a href="?page={n}">{n}</a>' for n in range(1, last_page + 1))
    return f"""
    <html><body>
    <div class="c-post__header"><h1 class="c-post__header__title">{title}</h1></div>
    <p class="BH-pagebtnA">{buttons}</p>
    {"".join(sections)}
    </body></html>
    """


class FakeTransport:
    """
    Serves canned bodies by URL; an Exception value is raised instead.

    Records every requested URL in ``requested``.
    """

    def __init__(self, routes: Dict[str, Union[str, bytes, dict, Exception]]):
        self.routes = routes
        self.requested: List[str] = []

    async def fetch(self, url: str) -> bytes:
        self.requested.append(url)
        if url not in self.routes:
            raise TransientFetchError(f"no route for {url}", url=url, status_code=404)
        body = self.routes[url]
        if isinstance(body, Exception):
            raise body
        if isinstance(body, dict):
            return orjson.dumps(body)
        if isinstance(body, str):
            return body.encode()
        return body

    async def fetch_json(self, url: str):
        return orjson.loads(await self.fetch(url))
