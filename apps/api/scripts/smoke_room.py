"""Join two clients to a room on a running server and walk through one offer/answer exchange."""
from __future__ import annotations

import argparse
import asyncio
from uuid import uuid4

from connectwave.services.client import connect


async def wait_for_roster(client, size: int) -> None:
	while len(client.roster) < size:
		await asyncio.sleep(0.05)


async def main(url: str, room_id: str) -> None:
	answered = asyncio.Event()

	async def note_answers(event: str, data: object) -> None:
		if event == "webrtc-answer":
			answered.set()

	async def answer_offers(event: str, data: object) -> None:
		if event == "webrtc-offer":
			await second.send_answer(data["from"], {"type": "answer", "sdp": "smoke"})

	async with connect(url, on_event=note_answers) as first, connect(url, on_event=answer_offers) as second:
		await first.wait_connected()
		await first.join_room(room_id, "smoke-1")
		await wait_for_roster(first, 1)
		await second.wait_connected()
		await second.join_room(room_id, "smoke-2")
		await asyncio.wait_for(wait_for_roster(first, 2), timeout=5)

		targets = first.offer_targets()
		for peer_id in targets:
			await first.send_offer(peer_id, {"type": "offer", "sdp": "smoke"})
		await asyncio.wait_for(answered.wait(), timeout=5)

	print(f"Room {room_id}: roster converged, offered to {targets}, answer received.")


if __name__ == "__main__":
	parser = argparse.ArgumentParser(description=__doc__)
	parser.add_argument("--url", default="ws://localhost:9002/ws")
	parser.add_argument("--room", default=f"smoke-{uuid4().hex[:8]}")
	args = parser.parse_args()
	asyncio.run(main(args.url, args.room))
