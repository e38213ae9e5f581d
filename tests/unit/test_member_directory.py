from slotbook.services.member_directory import StaticMemberDirectory


def test_known_members_only():
    directory = StaticMemberDirectory(["alice"])
    assert directory.exists("alice")
    assert not directory.exists("bob")
    assert not directory.exists("")


def test_add_and_remove():
    directory = StaticMemberDirectory()
    directory.add("bob")
    assert directory.exists("bob")
    directory.remove("bob")
    directory.remove("bob")
    assert not directory.exists("bob")


def test_allow_any_still_rejects_empty_id():
    directory = StaticMemberDirectory(allow_any=True)
    assert directory.exists("anyone")
    assert not directory.exists("")
