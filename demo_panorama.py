import os
import sys
from reproject import CubePanoramaProjection, load_cube_faces, parse_panorama_spec, save_image

FACE_NAMES = ['left', 'front', 'right', 'back', 'over', 'under']

def create_panorama(face_dir="data/cube", config_path="config/panorama.yaml"):
  """
  Demonstrate stitching six cube faces ({face_dir}/left.jpg ... under.jpg) into
  an equirectangular panorama.
  """
  panorama_spec = parse_panorama_spec(config_path)
  print(f"Loaded panorama parameters: {panorama_spec}")

  faces = load_cube_faces({name: os.path.join(face_dir, f"{name}.jpg") for name in FACE_NAMES})
  print(f"Loaded cube faces: {faces.dim}x{faces.dim}")

  projector = CubePanoramaProjection(panorama_spec)
  panorama = projector.project(faces)

  return save_image("output/panorama/cube_panorama.jpg", panorama)

def main(argv=None):
  argv = sys.argv[1:] if argv is None else argv
  try:
    output_path = create_panorama(*argv[:2])
  except (ValueError, FileNotFoundError) as e:
    print(f"Error: {e}")
    return 1

  print("\n" + "="*60)
  print("PANORAMA STITCHING COMPLETE")
  print("="*60)
  print(f"Panorama: {output_path}")
  return 0

if __name__ == "__main__":
  sys.exit(main())
