"""Unit tests for trending hashtag ranking."""

from dataclasses import dataclass

from xdrop.social.trending import compute_trending, engagement_score


@dataclass
class P:
    content: str
    likes: int = 0
    reposts: int = 0
    replies: int = 0


class TestTrending:
    def test_engagement_weights(self):
        assert engagement_score(P("x", likes=1, reposts=1, replies=2)) == 1 + 2 + 3

    def test_ranks_by_score(self):
        posts = [
            P("#ai rocks", likes=1),
            P("#defi moon", reposts=5),
            P("more #ai", likes=2),
        ]
        ranked = compute_trending(posts, 10)
        assert [t.topic for t in ranked] == ["#defi", "#ai"]
        assert ranked[0].score == 10.0
        assert ranked[1].posts == 2
        assert ranked[1].score == 3.0

    def test_ties_keep_first_seen_order(self):
        ranked = compute_trending([P("#b #a")], 10)
        assert [t.topic for t in ranked] == ["#b", "#a"]

    def test_limit(self):
        posts = [P(f"#t{i}", likes=i) for i in range(5)]
        assert len(compute_trending(posts, 2)) == 2

    def test_no_tags(self):
        assert compute_trending([P("plain")], 5) == []
