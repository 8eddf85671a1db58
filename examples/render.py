import asyncio
import starlightpi
from starlightpi import SkinRenderer, RenderType, CropType

async def main():
    async with SkinRenderer() as renderer:  # creates its own ClientSession and cache
        result = await (
            starlightpi.builder()
            .username("sucr_kolli")
            .render_type(RenderType.MARCHING)
            .crop_type(CropType.BUST)
            .position(100, 200)
            .scale(150)
            .centered(True)
            .render(renderer)
        )
        print(result)
        result.image.show()

asyncio.run(main())
