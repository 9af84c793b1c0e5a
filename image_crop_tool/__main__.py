from image_crop_tool.app import run

run()
