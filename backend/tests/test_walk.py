from sanctuary.services.walk import WalkWorld


def test_join_move_and_leave(emitter):
    world = WalkWorld(emitter)
    a = world.join('a', 'Anna')
    assert 240 <= a.x <= 520 and 240 <= a.y <= 460
    world.join('b', '')
    assert emitter.events('walk:player:join', sid='a')[-1]['id'] == 'b'
    assert emitter.events('walk:state:init', sid='b')[-1]['you']['name'].startswith('Guest')

    moved = world.move('a', 5000, -20)
    assert (moved.x, moved.y) == (1240, 40)
    update = emitter.events('walk:player:update', sid='b')[-1]
    assert update['id'] == 'a' and update['x'] == 1240
    assert emitter.events('walk:player:update', sid='a') == []

    # junk coordinates keep the previous position
    world.move('a', 'left', None)
    assert (world.players['a'].x, world.players['a'].y) == (1240, 40)

    assert world.move('ghost', 1, 1) is None
    assert world.leave('a')
    assert emitter.events('walk:player:leave', sid='b') == [{'id': 'a'}]
    assert world.leave('a') is False


def test_proximity_chat_radius(emitter):
    world = WalkWorld(emitter, chat_radius=180)
    for sid in ('me', 'near', 'far'):
        world.join(sid, sid)
    world.players['me'].x, world.players['me'].y = 100, 100
    world.players['near'].x, world.players['near'].y = 200, 200
    world.players['far'].x, world.players['far'].y = 600, 600
    emitter.clear()

    msg = world.chat('me', '  hello  ' + 'x' * 300)
    assert len(msg['text']) == 240
    assert sorted(emitter.recipients('walk:chat:recv')) == ['me', 'near']
    assert world.chat('me', '   ') is None
    assert world.chat('ghost', 'hi') is None
