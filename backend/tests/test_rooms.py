def test_seeded_rooms_have_voice_channels(state):
    assert list(state.rooms) == ['fireside', 'garden', 'study', 'youth']
    for room in state.rooms.values():
        assert [c.id for c in room.voice_channels] == ['lounge', 'prayer', 'quiet']
        assert all(c.room_id == room.id for c in room.voice_channels)


def test_hello_trims_and_defaults_identity(state):
    s = state.sessions.hello('sid-1', '   ' + 'x' * 40 + '  ', 'b' * 30)
    assert s.name == 'x' * 24
    assert s.badge == 'b' * 18

    guest = state.sessions.hello('sid-2', '   ', None)
    assert guest.name.startswith('Guest') and len(guest.name) == 9
    assert guest.badge == 'Seeker'


def test_create_room_rejects_blank_and_duplicates(state, emitter):
    assert state.room_store.create_room('   ') is None
    assert state.room_store.create_room('Dup', 'fireside') is None

    room = state.room_store.create_room('  Night Watch  ', 'Night Watch!!')
    assert room is not None
    assert room.id == 'nightwatch'
    assert room.name == 'Night Watch'
    assert room.desc == 'A new sanctuary room.'
    assert [c.id for c in room.voice_channels] == ['lounge', 'prayer', 'quiet']
    # channels are cloned, not shared with other rooms
    assert room.voice_channels[0] is not state.rooms['fireside'].voice_channels[0]

    lobby = emitter.events('lobby:rooms', sid=None)[-1]
    assert any(r['id'] == 'nightwatch' for r in lobby)
    assert state.room_store.create_room('Again', 'nightwatch') is None


def test_create_room_generates_id_when_missing(state):
    room = state.room_store.create_room('Fresh')
    assert room is not None
    assert room.id and room.id in state.rooms


def test_join_unknown_room_is_noop(state, emitter, hello):
    s1 = hello('s1', 'Alice')
    assert state.room_store.join(s1, 'nope') is False
    assert emitter.sent == []
    assert s1.room_id is None


def test_join_sends_snapshot_and_roster(state, emitter, hello):
    s1 = hello('s1', 'Alice')
    assert state.room_store.join(s1, 'fireside')

    snapshot = emitter.events('room:state', sid='s1')[-1]
    assert snapshot['room'] == {'id': 'fireside', 'name': 'Fireside Lounge',
                                'desc': 'Warm, calm conversation + prayer requests.'}
    assert snapshot['roster'] == [{'id': 's1', 'name': 'Alice', 'badge': 'Seeker'}]
    assert snapshot['messages'] == []
    assert snapshot['voiceChannels'][0] == {'id': 'lounge', 'name': 'Lounge', 'count': 0}

    toast = emitter.events('toast:system', sid='s1')[-1]
    assert toast['message'] == 'Alice entered Fireside Lounge.'
    lobby = emitter.events('lobby:rooms', sid=None)[-1]
    assert next(r for r in lobby if r['id'] == 'fireside')['online'] == 1


def test_scenario_chat_and_reaction_toggle(state, emitter, hello):
    s1 = hello('s1', 'Zed')
    s2 = hello('s2', 'Amy')
    state.room_store.join(s1, 'fireside')
    assert emitter.events('room:roster', sid='s1')[-1] == [{'id': 's1', 'name': 'Zed', 'badge': 'Seeker'}]

    msg = state.room_store.send_message(s1, 'fireside', 'hi')
    delivered = emitter.events('message:new', sid='s1')[-1]
    assert delivered['text'] == 'hi'
    assert delivered['user'] == {'id': 's1', 'name': 'Zed', 'badge': 'Seeker'}

    state.room_store.join(s2, 'fireside')
    roster = emitter.events('room:roster', sid='s1')[-1]
    assert [r['name'] for r in roster] == ['Amy', 'Zed']
    # the joiner's snapshot carries the existing message
    assert emitter.events('room:state', sid='s2')[-1]['messages'][0]['id'] == msg.id

    state.room_store.react(s2, 'fireside', msg.id, '👍')
    update = emitter.events('message:reactions', sid='s1')[-1]
    assert update == {'msgId': msg.id, 'reactions': {'👍': {'count': 1, 'by': ['s2']}}}

    state.room_store.react(s2, 'fireside', msg.id, '👍')
    assert emitter.events('message:reactions', sid='s1')[-1] == {'msgId': msg.id, 'reactions': {}}
    assert msg.reactions == {}


def test_reaction_counts_match_voters(state, hello):
    s1, s2, s3 = hello('s1'), hello('s2'), hello('s3')
    for s in (s1, s2, s3):
        state.room_store.join(s, 'study')
    msg = state.room_store.send_message(s1, 'study', 'amen')

    state.room_store.react(s1, 'study', msg.id, '🙏')
    state.room_store.react(s2, 'study', msg.id, '🙏')
    state.room_store.react(s3, 'study', msg.id, '❤️')
    state.room_store.react(s1, 'study', msg.id, '🙏')

    reactions = msg.reactions_dict()
    assert reactions == {'🙏': {'count': 1, 'by': ['s2']}, '❤️': {'count': 1, 'by': ['s3']}}
    for entry in reactions.values():
        assert entry['count'] == len(set(entry['by'])) > 0


def test_react_rejects_invalid_targets(state, emitter, hello):
    s1, outsider = hello('s1'), hello('s9')
    state.room_store.join(s1, 'study')
    msg = state.room_store.send_message(s1, 'study', 'hello')
    emitter.clear()

    assert state.room_store.react(outsider, 'study', msg.id, '👍') is False
    assert state.room_store.react(s1, 'study', 'missing', '👍') is False
    assert state.room_store.react(s1, 'nowhere', msg.id, '👍') is False
    assert state.room_store.react(s1, 'study', msg.id, '') is False
    assert emitter.sent == []


def test_message_boundaries(state, emitter, hello):
    s1 = hello('s1')
    state.room_store.join(s1, 'garden')
    emitter.clear()

    assert state.room_store.send_message(s1, 'garden', '   \n\t ') is None
    assert emitter.events('message:new') == []

    msg = state.room_store.send_message(s1, 'garden', 'a' * 2001)
    assert len(msg.text) == 2000


def test_non_member_cannot_send(state, emitter, hello):
    s1 = hello('s1')
    state.room_store.join(s1, 'garden')
    outsider = hello('s2')
    assert state.room_store.send_message(outsider, 'garden', 'sneaky') is None
    assert state.room_store.set_typing(outsider, 'garden', True) is False
    assert len(state.rooms['garden'].messages) == 0


def test_message_log_evicts_oldest(emitter, hello):
    from sanctuary.services.hub import Sanctuary
    small = Sanctuary(emitter, message_cap=3, state_messages=2)
    s1 = small.sessions.hello('s1', 'Alice')
    small.room_store.join(s1, 'youth')
    for i in range(5):
        small.room_store.send_message(s1, 'youth', f"m{i}")

    assert [m.text for m in small.rooms['youth'].messages] == ['m2', 'm3', 'm4']
    s2 = small.sessions.hello('s2', 'Bob')
    small.room_store.join(s2, 'youth')
    snapshot = emitter.events('room:state', sid='s2')[-1]
    assert [m['text'] for m in snapshot['messages']] == ['m3', 'm4']


def test_author_snapshot_survives_rename(state, hello):
    s1 = hello('s1', 'Before')
    state.room_store.join(s1, 'study')
    msg = state.room_store.send_message(s1, 'study', 'text')
    state.sessions.hello('s1', 'After')
    assert msg.user['name'] == 'Before'
    assert msg.to_dict()['user']['name'] == 'Before'


def test_typing_list_excludes_sender_and_caps(state, emitter, hello):
    sessions = [hello(f"s{i}", f"User{i}") for i in range(6)]
    for s in sessions:
        state.room_store.join(s, 'fireside')
    emitter.clear()

    for s in sessions[:5]:
        state.room_store.set_typing(s, 'fireside', True)

    assert 's4' not in emitter.recipients('typing:list')[-5:]
    last = emitter.events('typing:list', sid='s5')[-1]
    assert len(last) == 4
    assert set(last) <= {f"User{i}" for i in range(5)}

    emitter.clear()
    state.room_store.send_message(sessions[0], 'fireside', 'done typing')
    names = emitter.events('typing:list', sid='s5')[-1]
    assert 'User0' not in names
    assert 's0' not in emitter.recipients('typing:list')


def test_switching_rooms_moves_roster(state, emitter, hello):
    s1, s2 = hello('s1', 'Alice'), hello('s2', 'Bob')
    state.room_store.join(s2, 'fireside')
    state.room_store.join(s1, 'fireside')
    state.room_store.set_typing(s1, 'fireside', True)
    emitter.clear()

    state.room_store.join(s1, 'garden')

    assert 's1' not in state.rooms['fireside'].members
    assert 's1' not in state.rooms['fireside'].typing
    assert 's1' in state.rooms['garden'].members
    assert s1.room_id == 'garden'
    assert emitter.events('room:roster', sid='s2')[-1] == [{'id': 's2', 'name': 'Bob', 'badge': 'Seeker'}]
    assert emitter.events('typing:list', sid='s2')[-1] == []


def test_leave_all_on_disconnect(state, emitter, hello):
    s1, s2 = hello('s1', 'Alice'), hello('s2', 'Bob')
    state.room_store.join(s1, 'fireside')
    state.room_store.join(s2, 'fireside')
    emitter.clear()

    assert state.disconnect('s1')
    assert 's1' not in state.sessions
    assert state.rooms['fireside'].members == {'s2'}
    assert emitter.events('toast:system', sid='s2')[-1]['message'] == 'Alice stepped away.'
    assert emitter.events('room:roster', sid='s2')[-1] == [{'id': 's2', 'name': 'Bob', 'badge': 'Seeker'}]
    assert state.disconnect('s1') is False


def test_explicit_leave(state, hello):
    s1 = hello('s1')
    state.room_store.join(s1, 'fireside')
    assert state.room_store.leave(s1, 'garden') is False
    assert state.room_store.leave(s1, 'fireside') is True
    assert s1.room_id is None
    assert state.rooms['fireside'].members == set()


def test_lobby_summary_shape(state, hello):
    s1 = hello('s1')
    state.room_store.join(s1, 'youth')
    state.voice.join_voice(s1, 'youth', 'quiet')
    summary = {r['id']: r for r in state.presence.lobby_summary()}
    assert summary['youth']['online'] == 1
    assert {'id': 'quiet', 'name': 'Quiet Corner', 'count': 1} in summary['youth']['voice']
    assert summary['fireside']['online'] == 0
