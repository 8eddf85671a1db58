import asyncio
import aiohttp
from starlightpi import SkinRenderer, RenderRequest, RenderType

def draw(image, width, height, x, y):
    print(f"drawing {image.size} at ({x}, {y}) as {width}x{height}")

async def main():
    session = aiohttp.ClientSession()  # creating our own ClientSession since we can reuse it
    usernames = [
        "sucr_kolli",
        "Herobrine",
        "Technoblade"
    ]

    renderer = SkinRenderer(session=session)
    requests = [RenderRequest(name, render_type=RenderType.HEAD, x=i * 80) for i, name in enumerate(usernames)]
    results = await renderer.render_many(requests, draw=draw)  # renders all skins concurrently

    print(results)

    await renderer.close()
    await session.close()

asyncio.run(main())
