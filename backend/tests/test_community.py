"""
Tests for the community feed (posts, comments, votes, bookmarks, reports)
and the parent Q&A (questions, answers, helpfulness votes).
"""

from uuid import UUID

import pytest

from carebridge.core.exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from carebridge.models import ReportStatus, UserRole
from carebridge.services.answers import AnswerService
from carebridge.services.bookmarks import BookmarkService
from carebridge.services.comments import CommentService
from carebridge.services.posts import PostService
from carebridge.services.questions import QuestionService, normalize_tags, slugify
from carebridge.services.votes import VoteService


@pytest.fixture
def author(make_user):
    return make_user(UserRole.PARENT, name="Wanjiru")


@pytest.fixture
def reader(make_user):
    return make_user(UserRole.PARENT, name="Baraka")


@pytest.fixture
def post(db, author):
    created = PostService(db).create_post(author, {
        "title": "  Tips for picky eaters  ",
        "content": "What worked for your child?",
        "category": "Feeding",
        "tags": ["feeding", "sensory", "feeding"],
    })
    created["id"] = UUID(created["id"])
    return created


# ── Posts ────────────────────────────────────────────────────────────────────


class TestPosts:
    def test_create_normalises_input(self, post) -> None:
        assert post["title"] == "Tips for picky eaters"
        assert post["tags"] == ["feeding", "sensory"]
        assert post["type"] == "DISCUSSION"
        assert post["user_vote"] is None
        assert post["is_bookmarked"] is False

    def test_anonymous_post_hides_author(self, db, author) -> None:
        created = PostService(db).create_post(author, {
            "title": "Worried", "content": "Late talker", "is_anonymous": True,
        })
        assert created["author"] is None

    def test_list_filters_and_annotates_per_user(self, db, author, reader, post) -> None:
        service = PostService(db)
        service.create_post(author, {"title": "Sleep routines", "content": "Bedtime", "category": "Sleep"})
        VoteService(db).cast(reader, 1, post_id=post["id"])
        BookmarkService(db).toggle(reader, post_id=post["id"])

        feeding = service.list_posts(reader, category="Feeding")
        assert feeding["total"] == 1
        assert feeding["posts"][0]["user_vote"] == 1
        assert feeding["posts"][0]["is_bookmarked"] is True

        anonymous = service.list_posts(None, search="bedtime")
        assert [p["title"] for p in anonymous["posts"]] == ["Sleep routines"]
        assert anonymous["posts"][0]["user_vote"] is None

    def test_get_counts_views(self, db, reader, post) -> None:
        service = PostService(db)
        service.get_post(reader, post["id"])
        assert service.get_post(None, post["id"])["view_count"] == 2

    def test_only_author_edits(self, db, author, reader, post) -> None:
        service = PostService(db)
        with pytest.raises(ForbiddenError):
            service.update_post(reader, post["id"], {"title": "Hijacked"})
        updated = service.update_post(author, post["id"], {"type": "RESOURCE", "tags": ["a", "a", "b"]})
        assert updated["type"] == "RESOURCE"
        assert updated["tags"] == ["a", "b"]

    def test_staff_can_delete_and_lock(self, db, reader, moderator, post) -> None:
        service = PostService(db)
        with pytest.raises(ForbiddenError):
            service.set_locked(reader, post["id"], True)
        assert service.set_locked(moderator, post["id"], True)["is_locked"] is True

        service.delete_post(moderator, post["id"])
        with pytest.raises(NotFoundError):
            service.get_post(None, post["id"])


class TestReports:
    def test_duplicate_pending_report_conflicts(self, db, reader, post) -> None:
        service = PostService(db)
        report = service.report(reader, post["id"], "spam")
        assert report.status == ReportStatus.PENDING
        with pytest.raises(ConflictError):
            service.report(reader, post["id"], "spam again")

        service.resolve_report(report.id, "DISMISSED")
        service.report(reader, post["id"], "still spam")
        assert service.list_reports(status="PENDING")["total"] == 1

    def test_cannot_resolve_to_pending(self, db, reader, post) -> None:
        service = PostService(db)
        report = service.report(reader, post["id"], "off-topic")
        with pytest.raises(BadRequestError):
            service.resolve_report(report.id, "PENDING")


# ── Comments ─────────────────────────────────────────────────────────────────


class TestComments:
    def test_thread_and_counts(self, db, author, reader, post) -> None:
        service = CommentService(db)
        top = service.create(reader, post["id"], "Try food chaining")
        service.create(author, post["id"], "Thanks!", parent_id=top.id)

        assert PostService(db).get_post(None, post["id"])["comment_count"] == 2
        thread = service.thread(post["id"])
        assert thread["total"] == 1
        assert [r.content for r in service.replies(top.id)] == ["Thanks!"]

        service.delete(reader, top.id)
        assert PostService(db).get_post(None, post["id"])["comment_count"] == 0

    def test_locked_post_rejects_comments(self, db, reader, moderator, post) -> None:
        PostService(db).set_locked(moderator, post["id"], True)
        with pytest.raises(ForbiddenError):
            CommentService(db).create(reader, post["id"], "Late reply")

    def test_reply_must_share_post(self, db, author, reader, post) -> None:
        other = PostService(db).create_post(author, {"title": "Other", "content": "x"})
        comment = CommentService(db).create(reader, post["id"], "Hello")
        with pytest.raises(ForbiddenError):
            CommentService(db).create(reader, other["id"], "Cross-post", parent_id=comment.id)


# ── Votes ────────────────────────────────────────────────────────────────────


class TestVotes:
    def test_toggle_switch_and_reputation(self, db, author, reader, post) -> None:
        service = VoteService(db)
        vote = service.cast(reader, 1, post_id=post["id"])
        assert vote.value == 1
        assert author.reputation == 10
        assert service.target_votes(post_id=post["id"])["score"] == 1

        service.cast(reader, -1, post_id=post["id"])
        counts = service.target_votes(post_id=post["id"])
        assert (counts["upvotes"], counts["downvotes"]) == (0, 1)
        assert author.reputation == -2

        assert service.cast(reader, -1, post_id=post["id"]) is None
        assert service.target_votes(post_id=post["id"])["total_votes"] == 0
        assert author.reputation == 0

    def test_repeated_upvote_and_remove_does_not_farm_reputation(self, db, author, reader, post) -> None:
        service = VoteService(db)
        for _ in range(3):
            service.cast(reader, 1, post_id=post["id"])
            assert author.reputation == 10
            assert service.cast(reader, 1, post_id=post["id"]) is None
            assert author.reputation == 0

        service.cast(reader, 1, post_id=post["id"])
        assert author.reputation == 10

    def test_comment_votes_and_self_votes(self, db, author, reader, post) -> None:
        comment = CommentService(db).create(reader, post["id"], "Helpful reply")
        service = VoteService(db)
        service.cast(author, -1, comment_id=comment.id)
        assert reader.reputation == -1

        service.cast(author, 1, post_id=post["id"])
        assert author.reputation == 0

        stats = service.user_stats(author)
        assert stats == {
            "total_votes": 2, "upvotes_given": 1, "downvotes_given": 1,
            "posts_voted": 1, "comments_voted": 1,
        }

    def test_invalid_votes(self, db, reader, moderator, post) -> None:
        service = VoteService(db)
        with pytest.raises(BadRequestError):
            service.cast(reader, 2, post_id=post["id"])
        with pytest.raises(BadRequestError):
            service.cast(reader, 1)

        PostService(db).set_locked(moderator, post["id"], True)
        with pytest.raises(BadRequestError):
            service.cast(reader, 1, post_id=post["id"])


class TestBookmarks:
    def test_toggle_and_stats(self, db, author, reader, post) -> None:
        service = BookmarkService(db)
        question = QuestionService(db).create(author, {"title": "Speech at 3?", "content": "..."})

        assert service.toggle(reader, post_id=post["id"]) == {"bookmarked": True}
        service.toggle(reader, question_id=question.id)
        assert service.stats(reader) == {"total": 2, "posts": 1, "questions": 1}
        assert service.list_bookmarks(reader, "question")["total"] == 1

        assert service.toggle(reader, post_id=post["id"]) == {"bookmarked": False}
        assert service.status(reader, post_id=post["id"]) == {"bookmarked": False}

        with pytest.raises(BadRequestError):
            service.list_bookmarks(reader, "comment")


# ── Q&A ──────────────────────────────────────────────────────────────────────


class TestQuestions:
    def test_slug_helpers(self) -> None:
        assert slugify("When should my child say 'mama'?") == "when-should-my-child-say-mama"
        assert slugify("???") == "question"
        assert normalize_tags([" speech ", "speech", "", "ot"]) == ["speech", "ot"]

    def test_unique_slugs_and_lookup(self, db, author) -> None:
        service = QuestionService(db)
        first = service.create(author, {"title": "Toe walking", "content": "Is it normal?"})
        second = service.create(author, {"title": "Toe walking", "content": "Again"})
        assert (first.slug, second.slug) == ("toe-walking", "toe-walking-2")

        assert service.get("toe-walking-2").id == second.id
        assert service.get(str(first.id)).view_count == 1
        with pytest.raises(NotFoundError):
            service.get("missing-slug")

    def test_anonymous_question_gets_alias(self, db, author) -> None:
        question = QuestionService(db).create(author, {"title": "Private", "content": "x", "is_anonymous": True})
        assert question.anonymous_name.endswith(str(author.id)[:8])

    def test_tag_filter_and_unanswered(self, db, author, reader) -> None:
        service = QuestionService(db)
        tagged = service.create(author, {"title": "Stuttering", "content": "x", "tags": ["speech"]})
        service.create(author, {"title": "Handwriting", "content": "x", "tags": ["ot"]})

        result = service.list_questions(tag="speech")
        assert [q.id for q in result["items"]] == [tagged.id]
        assert result["total"] == 1

        AnswerService(db).create(reader, tagged.id, "Very common at this age")
        assert [q.title for q in service.list_questions(sort="unanswered")["items"]] == ["Handwriting"]

    def test_follow_toggle(self, db, author, reader) -> None:
        service = QuestionService(db)
        question = service.create(author, {"title": "Sensory diet", "content": "x"})
        assert service.toggle_follow(reader, question.id) == {"following": True, "follower_count": 1}
        assert service.is_following(reader, question.id) is True
        assert service.toggle_follow(reader, question.id) == {"following": False, "follower_count": 0}

    def test_only_author_closes(self, db, author, reader) -> None:
        service = QuestionService(db)
        question = service.create(author, {"title": "Closing", "content": "x"})
        with pytest.raises(ForbiddenError):
            service.close(reader, question.id)
        service.close(author, question.id, "Answered elsewhere")
        with pytest.raises(ForbiddenError):
            AnswerService(db).create(reader, question.id, "Too late")


class TestAnswers:
    @pytest.fixture
    def question(self, db, author):
        return QuestionService(db).create(author, {"title": "Bilingual delay?", "content": "x"})

    def test_one_answer_per_user(self, db, reader, question) -> None:
        service = AnswerService(db)
        service.create(reader, question.id, "No, it's a myth")
        assert reader.reputation == 5
        assert question.answer_count == 1
        with pytest.raises(BadRequestError):
            service.create(reader, question.id, "Second thoughts")

    def test_accept_moves_reputation(self, db, author, reader, make_user, question) -> None:
        service = AnswerService(db)
        other = make_user()
        first = service.create(reader, question.id, "First")
        second = service.create(other, question.id, "Second")

        with pytest.raises(ForbiddenError):
            service.accept(reader, question.id, first.id)

        service.accept(author, question.id, first.id)
        assert reader.reputation == 5 + 15
        assert question.has_accepted_answer is True

        service.accept(author, question.id, second.id)
        assert first.is_accepted is False
        assert reader.reputation == 5
        assert other.reputation == 5 + 15
        assert [a.id for a in service.list_for_question(question.id)][0] == second.id

    def test_helpful_votes(self, db, author, reader, question) -> None:
        service = AnswerService(db)
        answer = service.create(reader, question.id, "Read to them daily")

        result = service.vote(author, answer.id, "helpful")
        assert result["user_vote"] == "helpful"
        assert result["quality_score"] == 1
        assert reader.reputation == 5 + 2

        result = service.vote(author, answer.id, "not_helpful")
        assert (result["helpful_count"], result["not_helpful_count"]) == (0, 1)
        assert reader.reputation == 5 - 2

        result = service.vote(author, answer.id, "not_helpful")
        assert result["user_vote"] is None
        assert reader.reputation == 5

        with pytest.raises(BadRequestError):
            service.vote(author, answer.id, "love")
